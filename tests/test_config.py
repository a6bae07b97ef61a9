import pytest

from salesync.common import (
    ConfigurationError,
    DatabaseType,
    DatastoreBackend,
    SyncConfig,
    get_vault,
)
from salesync.common.config import DEFAULT_FILE_PATH, DEFAULT_SITE, DEFAULT_TENANT_ID
from salesync.common.secrets_vault import LocalSecretsVault, secure_config


@pytest.fixture
def sharepoint_env(monkeypatch):
    monkeypatch.setenv('SHAREPOINT_CLIENT_ID', 'client-123')
    monkeypatch.setenv('SHAREPOINT_CLIENT_SECRET', 's3cret')
    monkeypatch.setenv('SUPABASE_URL', 'https://db.example.test/')
    monkeypatch.setenv('SUPABASE_SERVICE_ROLE_KEY', 'service-key')


def test_from_env_defaults(sharepoint_env):
    config = SyncConfig.from_env()

    assert config.backend == DatastoreBackend.REST
    assert config.sharepoint.tenant_id == DEFAULT_TENANT_ID
    assert config.sharepoint.realm == DEFAULT_TENANT_ID
    assert config.sharepoint.site == DEFAULT_SITE
    assert config.sharepoint.file_path == DEFAULT_FILE_PATH
    assert config.rest.url == 'https://db.example.test'
    assert config.rest.service_key == 'service-key'
    assert config.database is None
    assert config.http_timeout == 30
    assert config.atomic is False


def test_from_env_overrides(sharepoint_env, monkeypatch):
    monkeypatch.setenv('SHAREPOINT_TENANT_ID', 'contoso.onmicrosoft.com')
    monkeypatch.setenv('SHAREPOINT_FILE_PATH', '/Shared/export.xml')
    monkeypatch.setenv('HTTP_TIMEOUT', '10')
    monkeypatch.setenv('SYNC_ATOMIC', 'true')

    config = SyncConfig.from_env()

    assert config.sharepoint.realm == 'contoso.onmicrosoft.com'
    assert config.sharepoint.file_path == '/Shared/export.xml'
    assert config.http_timeout == 10
    assert config.atomic is True


def test_missing_credentials(monkeypatch):
    monkeypatch.setenv('SUPABASE_URL', 'https://db.example.test')

    with pytest.raises(ConfigurationError, match='SHAREPOINT_CLIENT_ID'):
        SyncConfig.from_env()


def test_credentials_optional_for_datastore_commands(monkeypatch, tmp_path):
    monkeypatch.setenv('DATASTORE_BACKEND', 'sql')
    monkeypatch.setenv('SQLITE_PATH', str(tmp_path / 'sync.db'))

    config = SyncConfig.from_env(require_sharepoint=False)

    assert config.backend == DatastoreBackend.SQL
    assert config.database.db_type == DatabaseType.SQLITE


def test_rest_backend_requires_url(monkeypatch):
    monkeypatch.setenv('SHAREPOINT_CLIENT_ID', 'client-123')
    monkeypatch.setenv('SHAREPOINT_CLIENT_SECRET', 's3cret')

    with pytest.raises(ConfigurationError, match='SUPABASE_URL'):
        SyncConfig.from_env()


def test_sql_backend_requires_database(sharepoint_env, monkeypatch):
    monkeypatch.setenv('DATASTORE_BACKEND', 'sql')

    with pytest.raises(ConfigurationError, match='SQL datastore'):
        SyncConfig.from_env()


def test_unknown_backend(sharepoint_env, monkeypatch):
    monkeypatch.setenv('DATASTORE_BACKEND', 'mongo')

    with pytest.raises(ConfigurationError, match='Unsupported DATASTORE_BACKEND'):
        SyncConfig.from_env()


def test_postgresql_needs_database_name(sharepoint_env, monkeypatch):
    monkeypatch.setenv('POSTGRESQL_HOST', 'db.internal')

    with pytest.raises(ConfigurationError, match='POSTGRESQL_DATABASE'):
        SyncConfig.from_env()


def test_postgresql_settings(sharepoint_env, monkeypatch):
    monkeypatch.setenv('DATASTORE_BACKEND', 'sql')
    monkeypatch.setenv('POSTGRESQL_HOST', 'db.internal')
    monkeypatch.setenv('POSTGRESQL_DATABASE', 'reports')
    monkeypatch.setenv('POSTGRESQL_USERNAME', 'sync')
    monkeypatch.setenv('POSTGRESQL_PASSWORD', 'pw')

    database = SyncConfig.from_env().database

    assert database.db_type == DatabaseType.POSTGRESQL
    assert (database.host, database.port, database.database) == ('db.internal', 5432, 'reports')
    assert 'pw' not in repr(database)


def test_repr_hides_secrets(sync_config):
    assert 's3cret' not in repr(sync_config.sharepoint)
    assert 'service-key' not in repr(sync_config.rest)


def test_from_dict():
    config = SyncConfig.from_dict({
        'sharepoint': {'client_id': 'client-123', 'client_secret': 's3cret'},
        'backend': 'sql',
        'database': {'db_type': 'sqlite', 'database': 'sync.db'},
        'atomic': True,
    })

    assert config.backend == DatastoreBackend.SQL
    assert config.database.db_type == DatabaseType.SQLITE
    assert config.atomic is True
    assert config.sharepoint.site == DEFAULT_SITE


@pytest.mark.parametrize('overrides, key', [
    ({'backend': 'mongo'}, 'backend'),
    ({'backend': 'sql', 'database': {'db_type': 'oracle', 'database': 'sync'}}, 'database.db_type'),
])
def test_from_dict_unknown_enum_is_configuration_error(overrides, key):
    with pytest.raises(ConfigurationError, match=f'Unsupported {key}'):
        SyncConfig.from_dict({
            'sharepoint': {'client_id': 'client-123', 'client_secret': 's3cret'},
            **overrides,
        })


def test_from_dict_requires_credentials():
    with pytest.raises(ConfigurationError):
        SyncConfig.from_dict({'sharepoint': {'client_id': 'client-123'}})


# =============================================================================
# Vault
# =============================================================================

def test_vault_requires_master_key(tmp_path):
    with pytest.raises(ValueError, match='VAULT_MASTER_KEY'):
        LocalSecretsVault(vault_dir=str(tmp_path / 'vault'))


def test_vault_round_trip(monkeypatch, tmp_path):
    monkeypatch.setenv('VAULT_MASTER_KEY', 'correct horse battery staple')
    vault = LocalSecretsVault(vault_dir=str(tmp_path / 'vault'))

    vault.set('SHAREPOINT_CLIENT_SECRET', 'from-vault')

    reopened = LocalSecretsVault(vault_dir=str(tmp_path / 'vault'))
    assert reopened.get('SHAREPOINT_CLIENT_SECRET') == 'from-vault'
    assert reopened.list_keys() == ['SHAREPOINT_CLIENT_SECRET']
    assert b'from-vault' not in (tmp_path / 'vault' / 'secrets.enc').read_bytes()

    assert reopened.delete('SHAREPOINT_CLIENT_SECRET') is True
    assert reopened.get('SHAREPOINT_CLIENT_SECRET') is None


def test_wrong_master_key_reads_nothing(monkeypatch, tmp_path):
    monkeypatch.setenv('VAULT_MASTER_KEY', 'first-key')
    LocalSecretsVault(vault_dir=str(tmp_path / 'vault')).set('KEY', 'value')

    monkeypatch.setenv('VAULT_MASTER_KEY', 'second-key')
    assert LocalSecretsVault(vault_dir=str(tmp_path / 'vault')).get('KEY') is None


def test_vault_value_wins_over_environment(sharepoint_env, monkeypatch):
    monkeypatch.setenv('VAULT_MASTER_KEY', 'correct horse battery staple')
    get_vault().set('SHAREPOINT_CLIENT_SECRET', 'from-vault')

    assert SyncConfig.from_env().sharepoint.client_secret == 'from-vault'


def test_secure_config_falls_back_to_environment(monkeypatch):
    monkeypatch.setenv('HTTP_TIMEOUT', '12')

    assert secure_config('HTTP_TIMEOUT', cast=int) == 12
    assert secure_config('NOT_SET_ANYWHERE', default='fallback') == 'fallback'
