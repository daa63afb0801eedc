import logging
import posixpath
import re
from contextlib import contextmanager
from typing import Iterable

import pygit2

from . import types
from .errors import (
    ConcurrentModificationError,
    DetachedStateError,
    InvalidSignatureError,
    NotARepositoryError,
    ReferenceUpdateError,
    ResolutionError,
)
from .types import OID, RefValue

logger = logging.getLogger(__name__)

BRANCH_PREFIX = 'refs/heads/'

SIGNATURE_HEADERS = (b'gpgsig', b'gpgsig-sha256')
SIGNATURE_LINE = re.compile(
    rb'^(?P<name>.*?) ?<(?P<email>[^<>]*)> (?P<time>-?\d+) (?P<offset>[+-]\d{4})$')

REPO: pygit2.Repository | None = None


def open_repository(path: str) -> pygit2.Repository:
    global REPO
    REPO = _open(path)
    return REPO


@contextmanager
def change_repository(path: str):
    global REPO
    old_repo = REPO
    REPO = _open(path)
    try:
        yield REPO
    finally:
        REPO = old_repo


def _open(path: str) -> pygit2.Repository:
    try:
        repo = pygit2.Repository(path)
    except (KeyError, pygit2.GitError) as exc:
        raise NotARepositoryError(path) from exc
    logger.debug('opened repository %s', repo.path)
    return repo


def _repo() -> pygit2.Repository:
    assert REPO is not None, 'No repository is open'
    return REPO


def short_branch_name(ref: types.RefName) -> str:
    assert ref.startswith(BRANCH_PREFIX), f'expected a branch under {BRANCH_PREFIX}, found {ref}'
    return posixpath.relpath(ref, BRANCH_PREFIX)


def head_branch() -> str | None:
    HEAD = get_ref('HEAD', deref=False)
    if not HEAD.symbolic:
        return None
    return short_branch_name(HEAD.value)


def resolve_head() -> tuple[types.RefName, OID]:
    repo = _repo()
    if repo.head_is_detached:
        raise DetachedStateError()
    if repo.head_is_unborn:
        raise DetachedStateError(f'Branch {head_branch()} has no commits yet')
    head = repo.head
    return head.name, str(head.target)


def _signature(sig: pygit2.Signature) -> types.Signature:
    # historical commits may carry empty identities
    return types.Signature(name=sig.name or '', email=sig.email or '',
                           time=sig.time, offset=sig.offset)


def find_commit(oid: OID) -> types.Commit:
    try:
        obj = _repo()[oid]
    except (KeyError, ValueError, pygit2.GitError) as exc:
        raise ResolutionError(oid) from exc
    if isinstance(obj, pygit2.Tag):
        obj = obj.peel(pygit2.Commit)
    if not isinstance(obj, pygit2.Commit):
        raise ResolutionError(oid)

    return types.Commit(
        id=str(obj.id),
        tree=str(obj.tree_id),
        parents=[str(parent) for parent in obj.parent_ids],
        author=_signature(obj.author),
        committer=_signature(obj.committer),
        message=obj.message,
        encoding=obj.message_encoding,
    )


def resolve_commit_id(name: str) -> OID:
    """Expand a full or abbreviated hex id into the id of an existing commit."""
    return find_commit(name).id


def encode_text(text: str, encoding: str | None) -> bytes:
    try:
        return text.encode(encoding or 'utf-8')
    except (LookupError, UnicodeEncodeError) as exc:
        raise InvalidSignatureError(f'{text!r} cannot be stored as {encoding}: {exc}') from exc


def _header_fields(header: bytes) -> list[tuple[bytes, bytes]]:
    fields = []
    for line in header.split(b'\n'):
        if line.startswith(b' ') and fields:
            # continuation of a multi-line value, e.g. gpgsig
            key, value = fields[-1]
            fields[-1] = (key, value + b'\n' + line)
        else:
            key, _, value = line.partition(b' ')
            fields.append((key, value))
    return fields


def _format_offset(offset: int) -> bytes:
    sign = '-' if offset < 0 else '+'
    hours, minutes = divmod(abs(offset), 60)
    return f'{sign}{hours:02}{minutes:02}'.encode()


def _replace_signature(value: bytes, fields: dict, encoding: str | None) -> bytes:
    match = SIGNATURE_LINE.match(value)
    if match is None:
        raise InvalidSignatureError(f'Cannot parse signature {value!r}')

    name = encode_text(fields['name'].strip(), encoding) if 'name' in fields else match['name']
    email = encode_text(fields['email'].strip(), encoding) if 'email' in fields else match['email']
    time = str(fields['time']).encode() if 'time' in fields else match['time']
    offset = _format_offset(fields['offset']) if 'offset' in fields else match['offset']
    return b'%s <%s> %s %s' % (name, email, time, offset)


def rebuild_commit(oid: OID, parents: list[OID], author: dict | None = None,
                   committer: dict | None = None, message: str | None = None) -> OID:
    """Write a copy of commit ``oid`` that points at ``parents``.

    The copy is made from the raw object, so whatever is not replaced stays
    byte for byte, including messages in legacy encodings and identities
    libgit2 would refuse to create. ``author`` and ``committer``
    map signature fields (``name``, ``email``, ``time``, ``offset``) to new
    values. New text is stored in the commit's declared encoding. Commit
    signatures are dropped because they cannot match the new content.
    """
    repo = _repo()
    object_type, raw = repo.read(oid)
    header, _, body = raw.partition(b'\n\n')
    fields = _header_fields(header)
    encoding = next((value.decode('ascii', 'replace') for key, value in fields
                     if key == b'encoding'), None)
    replacements = {b'author': author, b'committer': committer}

    lines = []
    for key, value in fields:
        if key == b'parent' or key in SIGNATURE_HEADERS:
            continue
        if replacements.get(key):
            value = _replace_signature(value, replacements[key], encoding)
        lines.append(b'%s %s' % (key, value))
        if key == b'tree':
            lines.extend(b'parent %s' % parent.encode() for parent in parents)
    if message is not None:
        body = encode_text(message, encoding)

    return str(repo.write(object_type, b'\n'.join(lines) + b'\n\n' + body))


def get_ref(ref: types.RefName, deref=True) -> RefValue:
    try:
        reference = _repo().lookup_reference(ref)
    except (KeyError, ValueError):
        return RefValue(symbolic=False, value=None)

    target = reference.target
    symbolic = isinstance(target, str)
    if symbolic:
        if deref:
            return get_ref(target, deref=True)
        return RefValue(symbolic=True, value=target)
    return RefValue(symbolic=False, value=str(target))


def update_ref(ref: types.RefName, oid: OID, reflog_message: str, expected: OID | None = None):
    """Point ``ref`` at ``oid``.

    With ``expected`` the update is a compare-and-swap: it only happens if
    ``ref`` still holds ``expected``. libgit2's ``set_target`` re-checks the
    value under the reference lock, so a writer racing between our read and
    the write is also caught.
    """
    repo = _repo()
    target = pygit2.Oid(hex=oid)

    if expected is None:
        try:
            repo.create_reference(ref, target, force=True, message=reflog_message)
        except (ValueError, pygit2.GitError) as exc:
            raise ReferenceUpdateError(f'Failed to update {ref}: {exc}') from exc
        return

    try:
        reference = repo.lookup_reference(ref)
    except (KeyError, ValueError):
        raise ConcurrentModificationError(ref, expected, None)
    actual = reference.target
    if isinstance(actual, str) or str(actual) != expected:
        raise ConcurrentModificationError(ref, expected, str(actual))

    try:
        reference.set_target(target, reflog_message)
    except (ValueError, pygit2.GitError) as exc:
        current = get_ref(ref, deref=False).value
        if current != expected:
            raise ConcurrentModificationError(ref, expected, current) from exc
        raise ReferenceUpdateError(f'Failed to update {ref}: {exc}') from exc


def delete_ref(ref: types.RefName):
    try:
        _repo().lookup_reference(ref).delete()
    except (KeyError, ValueError, pygit2.GitError) as exc:
        raise ReferenceUpdateError(f'Failed to delete {ref}: {exc}') from exc


def iter_refs(prefix='', deref=True) -> Iterable[tuple[types.RefName, RefValue]]:
    for refname in list(_repo().references):
        if not refname.startswith(prefix):
            continue
        ref = get_ref(refname, deref=deref)
        if ref.value:
            yield refname, ref
