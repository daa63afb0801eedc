import argparse
import logging
import os
import sys
import textwrap
from datetime import datetime, timedelta, timezone

from . import backup
from . import base
from . import config
from . import data
from . import rewrite as rewrite_
from .errors import DetachedStateError, ExitCode, HistEditError, ReferenceUpdateError

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'


def main(argv=None) -> int:
    args = parse_args(argv)
    args.settings = config.load_config()
    setup_logging('DEBUG' if args.verbose else args.settings.log_level)

    try:
        data.open_repository(args.repo)
        args.func(args)
    except HistEditError as exc:
        print(f'error: {exc}', file=sys.stderr)
        if isinstance(exc, ReferenceUpdateError) and exc.pending:
            print(f'the rewritten history is at {exc.pending.new_tip}; '
                  f'{exc.pending.ref} still points at {exc.pending.expected}', file=sys.stderr)
        return exc.exit_code
    return ExitCode.SUCCESS


def setup_logging(level: str) -> logging.Logger:
    if not isinstance(logging.getLevelName(level), int):
        level = 'WARNING'
    logger = logging.getLogger('histedit')
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger


def _non_negative(value):
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f'must not be negative: {value}')
    return number


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog='histedit')
    parser.add_argument('-C', '--repo', default=os.getcwd(), help='path to the repository')
    parser.add_argument('-v', '--verbose', action='store_true')
    commands = parser.add_subparsers(dest='command')
    commands.required = True

    info_parser = commands.add_parser('info')
    info_parser.set_defaults(func=info)

    log_parser = commands.add_parser('log')
    log_parser.set_defaults(func=log)
    log_parser.add_argument('--offset', type=_non_negative, default=0)
    log_parser.add_argument('--limit', type=_non_negative, default=50)

    show_parser = commands.add_parser('show')
    show_parser.set_defaults(func=show)
    show_parser.add_argument('oid', default='@', nargs='?')

    rewrite_parser = commands.add_parser('rewrite')
    rewrite_parser.set_defaults(func=rewrite)
    rewrite_parser.add_argument('oid')
    for role in ('author', 'committer'):
        rewrite_parser.add_argument(f'--{role}-name', dest=f'{role}_name')
        rewrite_parser.add_argument(f'--{role}-email', dest=f'{role}_email')
        rewrite_parser.add_argument(f'--{role}-date', dest=f'{role}_time', type=int,
                                    metavar='EPOCH')
        rewrite_parser.add_argument(f'--{role}-offset', dest=f'{role}_offset', type=int,
                                    metavar='MINUTES')
    rewrite_parser.add_argument('-m', '--message')

    backup_parser = commands.add_parser('backup')
    backup_parser.set_defaults(func=show_backup)
    backup_parser.add_argument('branch', nargs='?')

    restore_parser = commands.add_parser('restore')
    restore_parser.set_defaults(func=restore)
    restore_parser.add_argument('branch', nargs='?')

    return parser.parse_args(argv)


def _format_time(time, offset=0):
    return datetime.fromtimestamp(time, timezone(timedelta(minutes=offset))).isoformat()


def info(args):
    repo_info = base.open_repo(args.repo)
    print(f'path:    {repo_info.path}')
    print(f'branch:  {repo_info.current_branch}')
    print(f'commits: {repo_info.commit_count}')


def log(args):
    for summary in base.list_commits(args.offset, args.limit):
        print(f'{summary.id[:10]} {_format_time(summary.author_time)} '
              f'{summary.author_name} {summary.short_message}')


def show(args):
    detail = base.get_commit_detail(base.get_oid(args.oid))
    print(f'commit {detail.id}')
    if detail.is_merge:
        print(f'Merge: {" ".join(parent[:10] for parent in detail.parents)}')
    for label, sig in (('Author', detail.author), ('Commit', detail.committer)):
        print(f'{label}: {sig.name} <{sig.email}> {_format_time(sig.time, sig.offset)}')
    print('')
    print(textwrap.indent(detail.message, '    '))


def _print_progress(current, total):
    print(f'\rRewriting commits: {current}/{total}', end='', file=sys.stderr)
    if current == total:
        print('', file=sys.stderr)


def rewrite(args):
    overrides = {
        key: value
        for key, value in vars(args).items()
        if key in rewrite_.OVERRIDE_KEYS and value is not None
    }
    outcome = rewrite_.rewrite(base.get_oid(args.oid), progress=_print_progress,
                                settings=args.settings, **overrides)
    print(f'{outcome.old_target} -> {outcome.new_target}')
    print(f'rewrote {outcome.commits_rewritten} commits; {outcome.branch} is now at {outcome.new_tip}')
    print(f'undo with: histedit restore {data.short_branch_name(outcome.branch)}')


def _current_branch(args):
    branch = args.branch or base.get_branch_name()
    if branch is None:
        raise DetachedStateError()
    return branch


def show_backup(args):
    if args.branch is None:
        backups = backup.list_backups(args.settings)
        if not backups:
            print('no backups')
        for branch, oid in sorted(backups.items()):
            print(f'{branch} {oid}')
        return

    state = backup.check(args.branch, args.settings)
    print(f'{args.branch} {state.backed_up_id}' if state.exists else f'no backup for {args.branch}')


def restore(args):
    branch = _current_branch(args)
    tip = backup.restore(branch, args.settings)
    print(f'{branch} restored to {tip}')
