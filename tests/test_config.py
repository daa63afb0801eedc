from histedit.config import DEFAULT_BACKUP_NAMESPACE, load_config, parse_int_env


def test_defaults(monkeypatch):
    for name in ('HISTEDIT_LOG_LEVEL', 'HISTEDIT_PROGRESS_EVERY', 'HISTEDIT_BACKUP_NAMESPACE'):
        monkeypatch.delenv(name, raising=False)

    config = load_config()

    assert config.log_level == 'WARNING'
    assert config.progress_every == 100
    assert config.backup_namespace == DEFAULT_BACKUP_NAMESPACE


def test_reads_environment(monkeypatch):
    monkeypatch.setenv('HISTEDIT_LOG_LEVEL', 'debug')
    monkeypatch.setenv('HISTEDIT_PROGRESS_EVERY', '25')
    monkeypatch.setenv('HISTEDIT_BACKUP_NAMESPACE', 'refs/rescue/')

    config = load_config()

    assert config.log_level == 'DEBUG'
    assert config.progress_every == 25
    assert config.backup_namespace == 'refs/rescue'


def test_parse_int_env_applies_default_and_bounds(monkeypatch):
    monkeypatch.setenv('HISTEDIT_TEST_INT', 'lots')
    assert parse_int_env('HISTEDIT_TEST_INT', 7, min_value=1, max_value=10) == 7

    monkeypatch.setenv('HISTEDIT_TEST_INT', '0')
    assert parse_int_env('HISTEDIT_TEST_INT', 7, min_value=1, max_value=10) == 1

    monkeypatch.setenv('HISTEDIT_TEST_INT', '99')
    assert parse_int_env('HISTEDIT_TEST_INT', 7, min_value=1, max_value=10) == 10


def test_backup_namespace_cannot_shadow_branches_or_tags(monkeypatch):
    for namespace in ('refs/heads', 'refs/heads/backups', 'refs/tags/', 'backups'):
        monkeypatch.setenv('HISTEDIT_BACKUP_NAMESPACE', namespace)
        assert load_config().backup_namespace == DEFAULT_BACKUP_NAMESPACE
