"""Edit one commit's metadata and rebuild everything that descends from it.

Commits are immutable, so changing the target means creating a new commit
for it and for every commit that has a rebuilt commit among its parents.
Rebuilt commits are copied from their raw objects with only the parent
lines replaced, so their trees and metadata survive byte for byte. The branch is moved once, at the very end, with a
compare-and-swap against the tip that was walked; until then the rewrite
has only added unreferenced objects to the store.
"""
import logging
from typing import Callable

from typing_extensions import Unpack

from . import backup
from . import base
from . import config
from . import data
from . import types
from .errors import (
    IncompleteRewriteError,
    InvalidSignatureError,
    ReferenceUpdateError,
    ResolutionError,
    RewriteCancelled,
    TargetNotFoundError,
)

logger = logging.getLogger(__name__)

MAX_OFFSET = 24 * 60 - 1

_ROLES = ('author', 'committer')
OVERRIDE_KEYS = frozenset(types.Overrides.__annotations__)


def rewrite(target: types.OID,
            progress: types.ProgressCallback | None = None,
            should_cancel: Callable[[], bool] | None = None,
            settings: config.Config | None = None,
            **overrides: Unpack[types.Overrides]) -> types.RewriteOutcome:
    settings = settings or config.load_config()
    unknown = set(overrides) - OVERRIDE_KEYS
    if unknown:
        raise TypeError(f'Unknown overrides: {", ".join(sorted(unknown))}')

    branch, tip = data.resolve_head()
    try:
        target = data.resolve_commit_id(target)
    except ResolutionError as exc:
        raise TargetNotFoundError(target, branch) from exc

    walk = base.walk_oldest_first(tip)
    target_commit = next((commit_ for commit_ in walk if commit_.id == target), None)
    if target_commit is None:
        raise TargetNotFoundError(target, branch)
    validate_overrides(overrides, target_commit.encoding)

    backup.snapshot(data.short_branch_name(branch), tip, settings)

    oid_map: types.OidMap = {}
    total = len(walk)
    for current, commit_ in enumerate(walk, start=1):
        is_target = commit_.id == target
        if is_target or any(parent in oid_map for parent in commit_.parents):
            oid_map[commit_.id] = _rebuild(commit_, oid_map, overrides if is_target else None)

        if current % settings.progress_every == 0 and current < total:
            _tick(progress, current, total)
            if should_cancel is not None and should_cancel():
                logger.warning('rewrite of %s cancelled at %d/%d; %s unchanged',
                               target, current, total, branch)
                raise RewriteCancelled(current, total)
    _tick(progress, total, total)

    if tip not in oid_map or target not in oid_map:
        raise IncompleteRewriteError(f'Rewriting {target} did not reach the tip of {branch}')

    pending = types.PendingRefUpdate(
        ref=branch,
        expected=tip,
        new_tip=oid_map[tip],
        reflog_message=f'histedit: rewrote commit {target[:8]}',
    )
    retry_ref_update(pending)

    return types.RewriteOutcome(
        old_target=target,
        new_target=oid_map[target],
        commits_rewritten=len(oid_map),
        branch=branch,
        old_tip=tip,
        new_tip=pending.new_tip,
    )


def retry_ref_update(pending: types.PendingRefUpdate):
    """Move the branch to the rebuilt tip; safe to call again after a failure."""
    if data.get_ref(pending.ref, deref=False).value == pending.new_tip:
        logger.info('%s already at %s', pending.ref, pending.new_tip)
        return

    try:
        data.update_ref(pending.ref, pending.new_tip, pending.reflog_message,
                        expected=pending.expected)
    except ReferenceUpdateError as exc:
        logger.warning('rewritten history is at %s but %s was not moved', pending.new_tip, pending.ref)
        raise ReferenceUpdateError(str(exc), pending=pending) from exc
    logger.info('moved %s from %s to %s', pending.ref, pending.expected, pending.new_tip)


def _rebuild(commit_: types.Commit, oid_map: types.OidMap,
             overrides: types.Overrides | None) -> types.OID:
    # parents outside the rebuilt set (e.g. the other side of a merge) are kept as-is
    parents = [oid_map.get(parent, parent) for parent in commit_.parents]
    overrides = overrides or {}

    new_oid = data.rebuild_commit(
        commit_.id,
        parents,
        author=_signature_fields(overrides, 'author'),
        committer=_signature_fields(overrides, 'committer'),
        message=overrides.get('message'),
    )
    logger.debug('rewrote %s -> %s', commit_.id, new_oid)
    return new_oid


def _signature_fields(overrides: types.Overrides, role: str) -> dict:
    prefix = f'{role}_'
    return {
        key[len(prefix):]: value
        for key, value in overrides.items()
        if key.startswith(prefix)
    }


def validate_overrides(overrides: types.Overrides, encoding: str | None = None):
    """Reject override values that would not make a well-formed commit.

    Text values must also be representable in ``encoding``, the encoding
    the target commit declares for its metadata.
    """
    for role in _ROLES:
        for field in ('name', 'email'):
            key = f'{role}_{field}'
            if key not in overrides:
                continue
            value = overrides[key]
            if not isinstance(value, str) or not value.strip():
                raise InvalidSignatureError(f'{key} must not be empty')
            if any(c in value for c in '<>\n'):
                raise InvalidSignatureError(f'{key} must not contain "<", ">" or newlines: {value!r}')
            if field == 'email' and any(c.isspace() for c in value.strip()):
                raise InvalidSignatureError(f'{key} must not contain whitespace: {value!r}')

        time_key = f'{role}_time'
        if time_key in overrides and not _is_int(overrides[time_key], minimum=0):
            raise InvalidSignatureError(f'{time_key} must be a non-negative integer')

        offset_key = f'{role}_offset'
        if offset_key in overrides and not _is_int(overrides[offset_key], minimum=-MAX_OFFSET,
                                                   maximum=MAX_OFFSET):
            raise InvalidSignatureError(f'{offset_key} must be within {MAX_OFFSET} minutes of UTC')

    if 'message' in overrides and not isinstance(overrides['message'], str):
        raise TypeError('message must be a string')

    for key in ('author_name', 'author_email', 'committer_name', 'committer_email', 'message'):
        if key in overrides:
            data.encode_text(overrides[key], encoding)


def _is_int(value, minimum=None, maximum=None):
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return (minimum is None or value >= minimum) and (maximum is None or value <= maximum)


def _tick(progress: types.ProgressCallback | None, current: int, total: int):
    if progress is None:
        return
    try:
        progress(current, total)
    except Exception:
        # observers never change the outcome
        logger.exception('progress callback failed at %d/%d', current, total)
