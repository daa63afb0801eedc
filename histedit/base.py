import heapq
import logging
import string
from collections import Counter, deque
from typing import Iterable

from . import data
from . import types
from .errors import ResolutionError

logger = logging.getLogger(__name__)

DETACHED = 'HEAD (detached)'
SUMMARY_WIDTH = 72


def get_branch_name():
    return data.head_branch()


def get_oid(name):
    if name == '@':
        name = 'HEAD'

    refs_to_try = [
        f'{name}',
        f'refs/{name}',
        f'refs/tags/{name}',
        f'refs/heads/{name}'
    ]
    for ref in refs_to_try:
        if oid := data.get_ref(ref).value:
            return data.resolve_commit_id(oid)

    is_hex = all(c in string.hexdigits for c in name)
    if name and is_hex:
        return data.resolve_commit_id(name)

    raise ResolutionError(name)


def _head_tip() -> types.OID | None:
    # None on an unborn branch
    return data.get_ref('HEAD').value


# History walking

def iter_commits_and_parents(oids: Iterable[types.OID]) -> Iterable[types.Commit]:
    oids = deque(oids)
    visited = set()

    while oids:
        oid = oids.popleft()
        if not oid or oid in visited:
            continue
        visited.add(oid)

        commit_ = data.find_commit(oid)
        yield commit_

        oids.extendleft(commit_.parents[:1])
        oids.extend(commit_.parents[1:])


def load_ancestry(tip: types.OID) -> dict[types.OID, types.Commit]:
    """Every commit reachable from ``tip``, keyed by id."""
    return {commit_.id: commit_ for commit_ in iter_commits_and_parents([tip])}


def _newest_first_key(commit_: types.Commit):
    return -commit_.committer.time, commit_.id


def walk_newest_first(tip: types.OID) -> list[types.Commit]:
    """Topologically sorted ancestry of ``tip``, children before parents.

    Among commits whose children have all been emitted, the one with the most
    recent committer time goes first; ties fall back to the id so the order is
    stable across runs.
    """
    arena = load_ancestry(tip)
    pending_children = Counter(parent for commit_ in arena.values() for parent in commit_.parents)

    ready = [_newest_first_key(arena[tip])]
    order = []
    while ready:
        *_, oid = heapq.heappop(ready)
        commit_ = arena[oid]
        order.append(commit_)
        for parent in commit_.parents:
            pending_children[parent] -= 1
            if pending_children[parent] == 0:
                heapq.heappush(ready, _newest_first_key(arena[parent]))

    assert len(order) == len(arena), 'ancestry is not a DAG'
    logger.debug('walked %d commits from %s', len(order), tip)
    return order


def walk_oldest_first(tip: types.OID) -> list[types.Commit]:
    """Every commit after all of its ancestors; the order commits are rebuilt in."""
    return walk_newest_first(tip)[::-1]


# Queries

def open_repo(path: str) -> types.RepoInfo:
    data.open_repository(path)
    tip = _head_tip()
    return types.RepoInfo(
        path=path,
        current_branch=get_branch_name() or DETACHED,
        commit_count=len(load_ancestry(tip)) if tip else 0,
    )


def _short_message(message: str) -> str:
    first_line = next(iter(message.splitlines()), '')
    if len(first_line) > SUMMARY_WIDTH:
        return f'{first_line[:SUMMARY_WIDTH - 3]}...'
    return first_line


def list_commits(offset: int, limit: int) -> list[types.CommitSummary]:
    if offset < 0 or limit < 0:
        raise ValueError(f'offset and limit must not be negative, got {offset} and {limit}')
    tip = _head_tip()
    if not tip:
        return []

    return [
        types.CommitSummary(
            id=commit_.id,
            short_message=_short_message(commit_.message),
            author_name=commit_.author.name,
            author_email=commit_.author.email,
            author_time=commit_.author.time,
        )
        for commit_ in walk_newest_first(tip)[offset:offset + limit]
    ]


def get_commit_detail(oid: types.OID) -> types.CommitDetail:
    commit_ = data.find_commit(oid)
    return types.CommitDetail(
        id=commit_.id,
        message=commit_.message,
        author=commit_.author,
        committer=commit_.committer,
        parents=list(commit_.parents),
        is_merge=len(commit_.parents) > 1,
    )
