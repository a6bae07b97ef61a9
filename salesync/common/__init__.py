"""
Common Sync Module (SharePoint → XML → Datastore)

Shared building blocks for the report sync:
- Configuration from .env with encrypted vault for secrets
- Pooled HTTP client
- SharePoint app-only client (token + file download)
- Report datastores (REST / SQLAlchemy)

Example Usage:
    from salesync.common import SyncConfig, HTTPClient, SharePointClient

    config = SyncConfig.from_env()
    http_client = HTTPClient(default_timeout=config.http_timeout)
    sharepoint = SharePointClient(http_client, ...)
"""

__version__ = '1.0.0'

# Configuration
from .config import (
    SyncConfig,
    SharePointConfig,
    RestStoreConfig,
    DatabaseConfig,
    DatabaseType,
    DatastoreBackend,
)

# Errors
from .errors import (
    SyncError,
    ConfigurationError,
    AuthenticationError,
    FileFetchError,
    ReportParseError,
    PersistenceError,
)

# Database engine and session management
from .engine import create_engine_from_config
from .session import SessionManager

# Models
from .models import Base, BaseModel, TimestampMixin, ReportHeader, Sale

# HTTP and SharePoint clients
from .http_client import HTTPClient
from .sharepoint_client import SharePointClient

# Datastores
from .stores import ReportStore, RestReportStore, SqlReportStore

# Data utilities
from .data_utils import (
    convert_to_bool,
    convert_to_int,
    convert_to_float,
    convert_to_text,
)

from .logging_setup import setup_logging
from .secrets_vault import secure_config, get_vault


__all__ = [
    '__version__',

    # Configuration
    'SyncConfig',
    'SharePointConfig',
    'RestStoreConfig',
    'DatabaseConfig',
    'DatabaseType',
    'DatastoreBackend',

    # Errors
    'SyncError',
    'ConfigurationError',
    'AuthenticationError',
    'FileFetchError',
    'ReportParseError',
    'PersistenceError',

    # Database
    'create_engine_from_config',
    'SessionManager',

    # Models
    'Base',
    'BaseModel',
    'TimestampMixin',
    'ReportHeader',
    'Sale',

    # Clients
    'HTTPClient',
    'SharePointClient',

    # Datastores
    'ReportStore',
    'RestReportStore',
    'SqlReportStore',

    # Data utilities
    'convert_to_bool',
    'convert_to_int',
    'convert_to_float',
    'convert_to_text',

    # Logging / secrets
    'setup_logging',
    'secure_config',
    'get_vault',
]
