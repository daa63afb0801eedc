"""Configuration loading from environment variables."""
from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_BACKUP_NAMESPACE = 'refs/histedit/backups'
_RESERVED_NAMESPACES = ('refs/heads', 'refs/tags')


@dataclass(frozen=True)
class Config:
    log_level: str = 'WARNING'
    progress_every: int = 100
    backup_namespace: str = DEFAULT_BACKUP_NAMESPACE


def parse_int_env(name: str, default: int, min_value: int | None = None,
                  max_value: int | None = None) -> int:
    try:
        value = int(os.getenv(name, str(default)).strip())
    except ValueError:
        return default
    if min_value is not None:
        value = max(min_value, value)
    if max_value is not None:
        value = min(max_value, value)
    return value


def _backup_namespace(raw: str) -> str:
    namespace = raw.strip().rstrip('/')
    if not namespace.startswith('refs/'):
        return DEFAULT_BACKUP_NAMESPACE
    for reserved in _RESERVED_NAMESPACES:
        if namespace == reserved or namespace.startswith(f'{reserved}/'):
            return DEFAULT_BACKUP_NAMESPACE
    return namespace


def load_config() -> Config:
    return Config(
        log_level=os.getenv('HISTEDIT_LOG_LEVEL', 'WARNING').strip().upper(),
        progress_every=parse_int_env('HISTEDIT_PROGRESS_EVERY', 100, min_value=1, max_value=100_000),
        backup_namespace=_backup_namespace(
            os.getenv('HISTEDIT_BACKUP_NAMESPACE', DEFAULT_BACKUP_NAMESPACE)),
    )
