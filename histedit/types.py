from typing import Callable, NamedTuple, TypeAlias, TypedDict

OID: TypeAlias = str  # hex hash
RefName: TypeAlias = str  # full name, e.g. refs/heads/main
OidMap: TypeAlias = dict[OID, OID]  # old id -> rebuilt id
ProgressCallback: TypeAlias = Callable[[int, int], None]  # (current, total)


class Signature(NamedTuple):
    name: str
    email: str
    time: int  # seconds since epoch
    offset: int  # minutes from UTC


class Commit(NamedTuple):
    id: OID
    tree: OID
    parents: list[OID]
    author: Signature
    committer: Signature
    message: str
    encoding: str | None = None  # from the commit's encoding header


class RefValue(NamedTuple):
    symbolic: bool
    value: OID | RefName | None


class Overrides(TypedDict, total=False):
    author_name: str
    author_email: str
    author_time: int
    author_offset: int
    committer_name: str
    committer_email: str
    committer_time: int
    committer_offset: int
    message: str


class RewriteOutcome(NamedTuple):
    old_target: OID
    new_target: OID
    commits_rewritten: int
    branch: RefName
    old_tip: OID
    new_tip: OID


class PendingRefUpdate(NamedTuple):
    ref: RefName
    expected: OID
    new_tip: OID
    reflog_message: str


class BackupState(NamedTuple):
    exists: bool
    backed_up_id: OID | None


class RepoInfo(NamedTuple):
    path: str
    current_branch: str
    commit_count: int


class CommitSummary(NamedTuple):
    id: OID
    short_message: str
    author_name: str
    author_email: str
    author_time: int


class CommitDetail(NamedTuple):
    id: OID
    message: str
    author: Signature
    committer: Signature
    parents: list[OID]
    is_merge: bool
