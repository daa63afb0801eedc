"""Recovery references for rewritten branches.

Before a rewrite touches anything, the branch tip is recorded under a
reserved namespace (``refs/histedit/backups/<branch>`` by default). There is
at most one backup per branch: a new rewrite overwrites the previous one.
``restore`` puts the branch back and removes the backup; nothing prunes
backups automatically.

Every function takes the ``Config`` whose ``backup_namespace`` it works in.
Pass the same settings given to ``rewrite`` to find the backup it made.
"""
import logging
import posixpath

from . import config
from . import data
from . import types
from .errors import BackupError, NoBackupError, ReferenceUpdateError, RestoreError

logger = logging.getLogger(__name__)


def _namespace(settings: config.Config | None) -> str:
    return (settings or config.load_config()).backup_namespace


def backup_ref(branch: str, settings: config.Config | None = None) -> types.RefName:
    return f'{_namespace(settings)}/{branch}'


def snapshot(branch: str, tip: types.OID, settings: config.Config | None = None):
    ref = backup_ref(branch, settings)
    try:
        data.update_ref(ref, tip, f'histedit: backup of {branch}')
    except ReferenceUpdateError as exc:
        raise BackupError(f'Could not back up {branch}: {exc}') from exc
    logger.info('backed up %s at %s to %s', branch, tip, ref)


def check(branch: str, settings: config.Config | None = None) -> types.BackupState:
    value = data.get_ref(backup_ref(branch, settings), deref=False).value
    return types.BackupState(exists=value is not None, backed_up_id=value)


def restore(branch: str, settings: config.Config | None = None) -> types.OID:
    ref = backup_ref(branch, settings)
    state = check(branch, settings)
    if not state.exists:
        raise NoBackupError(branch)

    tip = state.backed_up_id
    data.update_ref(f'{data.BRANCH_PREFIX}{branch}', tip, f'histedit: restored {branch} from backup')
    logger.info('restored %s to %s', branch, tip)

    try:
        data.delete_ref(ref)
    except ReferenceUpdateError as exc:
        logger.warning('restored %s but could not remove %s: %s', branch, ref, exc)
        raise RestoreError(f'Restored {branch} to {tip}, but failed to remove {ref}: {exc}',
                           restored_tip=tip) from exc
    return tip


def list_backups(settings: config.Config | None = None) -> dict[str, types.OID]:
    prefix = _namespace(settings)
    return {
        posixpath.relpath(refname, prefix): ref.value
        for refname, ref in data.iter_refs(f'{prefix}/', deref=False)
    }
