"""
Configuration management for the report sync service.
Handles .env-based configuration for the SharePoint source, the REST
datastore and the optional SQL datastore.
Sensitive values are loaded from the encrypted vault with .env fallback.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from decouple import config as env_config, UndefinedValueError

from .errors import ConfigurationError
from .secrets_vault import secure_config


# Tenant and report location are fixed for the deployment; the environment
# may override them but requests never can.
DEFAULT_TENANT_ID = 'carecollisionllc.onmicrosoft.com'
DEFAULT_SITE = 'carecollisionllc.sharepoint.com'
DEFAULT_FILE_PATH = '/Documents/General/Reports/Data/Daily Export - Sales Forecast_Report.xml'


class DatabaseType(Enum):
    """Supported SQL database types"""
    MARIADB = "mariadb"
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"


class DatastoreBackend(Enum):
    """Where synced rows are written"""
    REST = "rest"
    SQL = "sql"


@dataclass
class DatabaseConfig:
    """
    SQL database connection configuration.
    Supports PostgreSQL and MariaDB servers and SQLite files.
    """
    db_type: DatabaseType
    database: str
    host: str = ''
    port: int = 0
    username: str = ''
    password: str = ''

    # Connection pool settings
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    pool_pre_ping: bool = True

    def __repr__(self) -> str:
        """Safe representation without password"""
        return (f"DatabaseConfig(db_type={self.db_type.value}, host={self.host}, "
                f"database={self.database}, username={self.username})")


@dataclass
class SharePointConfig:
    """
    SharePoint app-only credentials and the report location.
    """
    client_id: str
    client_secret: str
    app_id: str = ''
    tenant_id: str = DEFAULT_TENANT_ID
    site: str = DEFAULT_SITE
    file_path: str = DEFAULT_FILE_PATH

    @property
    def realm(self) -> str:
        return self.tenant_id

    def __repr__(self) -> str:
        """Safe representation without the client secret"""
        return (f"SharePointConfig(client_id={self.client_id}, tenant_id={self.tenant_id}, "
                f"site={self.site}, file_path={self.file_path})")


@dataclass
class RestStoreConfig:
    """
    REST datastore (PostgREST / Supabase) settings.
    """
    url: str
    service_key: str

    def __repr__(self) -> str:
        return f"RestStoreConfig(url={self.url})"


@dataclass
class SyncConfig:
    """
    Main configuration class for the sync service.
    """
    sharepoint: SharePointConfig
    backend: DatastoreBackend = DatastoreBackend.REST
    rest: Optional[RestStoreConfig] = None
    database: Optional[DatabaseConfig] = None

    http_timeout: int = 30
    atomic: bool = False
    log_level: str = 'INFO'

    def validate(self) -> 'SyncConfig':
        """
        Check that the selected datastore backend is configured.

        Raises:
            ConfigurationError: If the backend settings are missing
        """
        if self.backend == DatastoreBackend.REST and self.rest is None:
            raise ConfigurationError(
                "REST datastore selected but SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY are not set"
            )
        if self.backend == DatastoreBackend.SQL and self.database is None:
            raise ConfigurationError(
                "SQL datastore selected but no POSTGRESQL_*, MARIADB_* or SQLITE_PATH settings found"
            )
        return self

    @classmethod
    def from_env(cls, require_sharepoint: bool = True) -> 'SyncConfig':
        """
        Load configuration from environment variables (.env file).

        Args:
            require_sharepoint: Fail when the SharePoint credentials are
                missing (commands that only touch the datastore pass False)

        Returns:
            SyncConfig: validated configuration

        Raises:
            ConfigurationError: If a required value is missing
        """
        client_id = env_config('SHAREPOINT_CLIENT_ID', default='')
        client_secret = secure_config('SHAREPOINT_CLIENT_SECRET', default='')  # From vault
        if require_sharepoint and (not client_id or not client_secret):
            raise ConfigurationError(
                "SHAREPOINT_CLIENT_ID and SHAREPOINT_CLIENT_SECRET must be set"
            )

        sharepoint = SharePointConfig(
            client_id=client_id,
            client_secret=client_secret,
            app_id=env_config('SHAREPOINT_APP_ID', default=''),
            tenant_id=env_config('SHAREPOINT_TENANT_ID', default=DEFAULT_TENANT_ID),
            site=env_config('SHAREPOINT_SITE', default=DEFAULT_SITE),
            file_path=env_config('SHAREPOINT_FILE_PATH', default=DEFAULT_FILE_PATH),
        )

        backend = _parse_enum(DatastoreBackend, env_config('DATASTORE_BACKEND', default='rest'), 'DATASTORE_BACKEND')

        rest_config = None
        rest_url = env_config('SUPABASE_URL', default=None)
        if rest_url:
            rest_config = RestStoreConfig(
                url=rest_url.rstrip('/'),
                service_key=secure_config('SUPABASE_SERVICE_ROLE_KEY', default=''),  # From vault
            )

        return cls(
            sharepoint=sharepoint,
            backend=backend,
            rest=rest_config,
            database=_database_from_env(),
            http_timeout=env_config('HTTP_TIMEOUT', default=30, cast=int),
            atomic=env_config('SYNC_ATOMIC', default=False, cast=bool),
            log_level=env_config('LOG_LEVEL', default='INFO'),
        ).validate()

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'SyncConfig':
        """
        Load configuration from dictionary.

        Args:
            config_dict: Dictionary with configuration values

        Returns:
            SyncConfig: validated configuration
        """
        sp = config_dict.get('sharepoint') or {}
        if not sp.get('client_id') or not sp.get('client_secret'):
            raise ConfigurationError("sharepoint.client_id and sharepoint.client_secret are required")

        rest_config = None
        rest = config_dict.get('rest')
        if rest:
            rest_config = RestStoreConfig(url=rest['url'].rstrip('/'), service_key=rest['service_key'])

        db_config = None
        db = config_dict.get('database')
        if db:
            db_config = DatabaseConfig(
                db_type=_parse_enum(DatabaseType, db.get('db_type', 'postgresql'), 'database.db_type'),
                database=db['database'],
                host=db.get('host', ''),
                port=db.get('port', 0),
                username=db.get('username', ''),
                password=db.get('password', ''),
            )

        return cls(
            sharepoint=SharePointConfig(
                client_id=sp['client_id'],
                client_secret=sp['client_secret'],
                app_id=sp.get('app_id', ''),
                tenant_id=sp.get('tenant_id', DEFAULT_TENANT_ID),
                site=sp.get('site', DEFAULT_SITE),
                file_path=sp.get('file_path', DEFAULT_FILE_PATH),
            ),
            backend=_parse_enum(DatastoreBackend, config_dict.get('backend', 'rest'), 'backend'),
            rest=rest_config,
            database=db_config,
            http_timeout=config_dict.get('http_timeout', 30),
            atomic=config_dict.get('atomic', False),
            log_level=config_dict.get('log_level', 'INFO'),
        ).validate()


def _database_from_env() -> Optional[DatabaseConfig]:
    """Build the SQL datastore config from whichever server is configured."""
    pool_kwargs = dict(
        pool_size=env_config('DB_POOL_SIZE', default=5, cast=int),
        max_overflow=env_config('DB_MAX_OVERFLOW', default=10, cast=int),
        pool_timeout=env_config('DB_POOL_TIMEOUT', default=30, cast=int),
        pool_recycle=env_config('DB_POOL_RECYCLE', default=1800, cast=int),
    )

    pg_host = env_config('POSTGRESQL_HOST', default=None)
    if pg_host:
        return DatabaseConfig(
            db_type=DatabaseType.POSTGRESQL,
            host=pg_host,
            port=env_config('POSTGRESQL_PORT', default=5432, cast=int),
            database=_required('POSTGRESQL_DATABASE'),
            username=_required('POSTGRESQL_USERNAME'),
            password=secure_config('POSTGRESQL_PASSWORD', default=''),  # From vault
            **pool_kwargs,
        )

    mariadb_host = env_config('MARIADB_HOST', default=None)
    if mariadb_host:
        return DatabaseConfig(
            db_type=DatabaseType.MARIADB,
            host=mariadb_host,
            port=env_config('MARIADB_PORT', default=3306, cast=int),
            database=_required('MARIADB_DATABASE'),
            username=_required('MARIADB_USERNAME'),
            password=secure_config('MARIADB_PASSWORD', default=''),  # From vault
            **pool_kwargs,
        )

    sqlite_path = env_config('SQLITE_PATH', default=None)
    if sqlite_path:
        return DatabaseConfig(db_type=DatabaseType.SQLITE, database=sqlite_path)

    return None


def _parse_enum(enum_cls, value: str, key: str):
    """Enum member named by value (case-insensitive), else ConfigurationError."""
    name = str(value).strip().lower()
    try:
        return enum_cls(name)
    except ValueError:
        raise ConfigurationError(
            f"Unsupported {key}: {name}. "
            f"Supported: {', '.join(member.value for member in enum_cls)}"
        )


def _required(key: str) -> str:
    try:
        return env_config(key)
    except UndefinedValueError:
        raise ConfigurationError(f"{key} must be set")
