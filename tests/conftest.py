from pathlib import Path

import pytest

from salesync.common import secrets_vault
from salesync.common.config import (
    DatabaseConfig,
    DatabaseType,
    DatastoreBackend,
    RestStoreConfig,
    SharePointConfig,
    SyncConfig,
)


FIXTURES = Path(__file__).parent / 'fixtures'

ENV_KEYS = [
    'SHAREPOINT_CLIENT_ID', 'SHAREPOINT_CLIENT_SECRET', 'SHAREPOINT_APP_ID',
    'SHAREPOINT_TENANT_ID', 'SHAREPOINT_SITE', 'SHAREPOINT_FILE_PATH',
    'SUPABASE_URL', 'SUPABASE_SERVICE_ROLE_KEY', 'DATASTORE_BACKEND',
    'POSTGRESQL_HOST', 'POSTGRESQL_DATABASE', 'POSTGRESQL_USERNAME', 'POSTGRESQL_PASSWORD',
    'MARIADB_HOST', 'SQLITE_PATH', 'SYNC_ATOMIC', 'HTTP_TIMEOUT', 'LOG_LEVEL',
    'VAULT_MASTER_KEY', 'VAULT_DIR',
]

ACME_XML = """<?xml version="1.0"?>
<report>
  <header>
    <companyName>Acme</companyName>
    <totalLossReportViewParameter><flag>true</flag></totalLossReportViewParameter>
  </header>
  <sale><row_index>1</row_index><total_amount>100.00</total_amount></sale>
  <sale><row_index>2</row_index><total_amount>abc</total_amount></sale>
</report>
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Run every test without ambient credentials or a vault."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    secrets_vault.reset_vault()
    yield
    secrets_vault.reset_vault()


@pytest.fixture
def report_xml():
    return (FIXTURES / 'sales_report.xml').read_bytes()


@pytest.fixture
def acme_xml():
    return ACME_XML


@pytest.fixture
def sync_config():
    return SyncConfig(
        sharepoint=SharePointConfig(
            client_id='client-123',
            client_secret='s3cret',
            tenant_id='contoso.onmicrosoft.com',
            site='contoso.sharepoint.com',
            file_path='/Documents/Reports/export.xml',
        ),
        backend=DatastoreBackend.REST,
        rest=RestStoreConfig(url='https://db.example.test', service_key='service-key'),
    )


@pytest.fixture
def sqlite_config(tmp_path):
    return DatabaseConfig(db_type=DatabaseType.SQLITE, database=str(tmp_path / 'sync.db'))


class FakeStore:
    """In-memory ReportStore that records calls and can be told to fail."""

    def __init__(self, fail_header=None, fail_rows=None, next_id=41):
        self.fail_header = fail_header
        self.fail_rows = fail_rows
        self.next_id = next_id
        self.headers = []
        self.row_batches = []
        self.calls = []

    def insert_header(self, header):
        self.calls.append('insert_header')
        if self.fail_header:
            raise self.fail_header
        self.next_id += 1
        self.headers.append({**header, 'id': self.next_id})
        return self.next_id

    def insert_rows(self, rows):
        self.calls.append('insert_rows')
        if self.fail_rows:
            raise self.fail_rows
        self.row_batches.append([dict(row) for row in rows])
        return True


@pytest.fixture
def fake_store():
    return FakeStore()
