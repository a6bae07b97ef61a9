"""
Datastore backends for the synced report.

Both backends expose the same two calls used by the sync orchestration:

    insert_header(header) -> generated id
    insert_rows(rows)     -> True

The two inserts are independent writes. A failed row insert leaves the
header already persisted; callers that want both-or-nothing use
insert_report() where the backend offers it.
"""

import logging
from typing import Any, Dict, List, Protocol, runtime_checkable

import requests
from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError

from .errors import PersistenceError
from .http_client import HTTPClient
from .models import Base, ReportHeader, Sale
from .session import SessionManager


logger = logging.getLogger(__name__)

HEADERS_TABLE = 'report_headers'
SALES_TABLE = 'sales'


@runtime_checkable
class ReportStore(Protocol):
    """Persistence interface consumed by the sync orchestration."""

    def insert_header(self, header: Dict[str, Any]) -> Any:
        ...

    def insert_rows(self, rows: List[Dict[str, Any]]) -> bool:
        ...


# =============================================================================
# REST (PostgREST / Supabase) backend
# =============================================================================

class RestReportStore:
    """
    Writes to a PostgREST API (Supabase REST) with a service key.
    """

    def __init__(self, http_client: HTTPClient, url: str, service_key: str):
        """
        Args:
            http_client: Shared HTTP client
            url: Project URL, e.g. https://xyz.supabase.co
            service_key: Service role key (sent as apikey and bearer token)
        """
        self.http_client = http_client
        self.base_url = f"{url.rstrip('/')}/rest/v1"
        self.service_key = service_key

    def _headers(self, prefer: str) -> Dict[str, str]:
        return {
            'apikey': self.service_key,
            'Authorization': f'Bearer {self.service_key}',
            'Content-Type': 'application/json',
            'Prefer': prefer,
        }

    def _post(self, table: str, payload: List[Dict[str, Any]], prefer: str) -> requests.Response:
        try:
            return self.http_client.post(
                f"{self.base_url}/{table}",
                json=payload,
                headers=self._headers(prefer),
            )
        except requests.exceptions.HTTPError as e:
            raise PersistenceError(
                f"Insert into {table} failed: {_error_message(e.response)}"
            ) from e
        except requests.exceptions.RequestException as e:
            raise PersistenceError(f"Insert into {table} failed: {e}") from e

    def insert_header(self, header: Dict[str, Any]) -> Any:
        """
        Insert the header row and return its generated id.

        Raises:
            PersistenceError: If the insert is rejected or returns no row
        """
        response = self._post(HEADERS_TABLE, [header], prefer='return=representation')
        try:
            created = response.json()
        except ValueError as e:
            raise PersistenceError(f"Insert into {HEADERS_TABLE} returned invalid JSON") from e

        if isinstance(created, list):
            created = created[0] if created else None
        if not created or created.get('id') is None:
            raise PersistenceError(f"Insert into {HEADERS_TABLE} returned no id")

        logger.info(f"Inserted report header id={created['id']}")
        return created['id']

    def insert_rows(self, rows: List[Dict[str, Any]]) -> bool:
        """
        Insert all sale rows as one request.

        Raises:
            PersistenceError: If the insert is rejected
        """
        if not rows:
            logger.info("No sale rows to insert")
            return True

        self._post(SALES_TABLE, rows, prefer='return=minimal')
        logger.info(f"Inserted {len(rows)} sale rows")
        return True


def _error_message(response: requests.Response) -> str:
    """PostgREST puts the reason in a JSON 'message' field; fall back to the raw body."""
    if response is None:
        return 'no response'
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and body.get('message'):
        return body['message']
    return response.text


# =============================================================================
# SQL (SQLAlchemy) backend
# =============================================================================

class SqlReportStore:
    """
    Writes through SQLAlchemy ORM models.

    insert_header() and insert_rows() each run in their own transaction.
    """

    def __init__(self, session_manager: SessionManager):
        self.session_manager = session_manager

    def create_tables(self) -> None:
        """Create report_headers and sales if they do not exist."""
        Base.metadata.create_all(
            self.session_manager.engine,
            tables=[ReportHeader.__table__, Sale.__table__],
        )
        logger.info("Tables 'report_headers' and 'sales' ready")

    def insert_header(self, header: Dict[str, Any]) -> int:
        """
        Insert and commit the header row.

        Raises:
            PersistenceError: If the insert fails
        """
        try:
            with self.session_manager.session_scope() as session:
                record = ReportHeader(**header)
                session.add(record)
                session.flush()
                header_id = record.id
        except SQLAlchemyError as e:
            raise PersistenceError(f"Insert into {HEADERS_TABLE} failed: {e}") from e

        logger.info(f"Inserted report header id={header_id}")
        return header_id

    def insert_rows(self, rows: List[Dict[str, Any]]) -> bool:
        """
        Insert and commit all sale rows in one statement.

        Raises:
            PersistenceError: If the insert fails (already committed headers stay)
        """
        if not rows:
            logger.info("No sale rows to insert")
            return True

        try:
            with self.session_manager.session_scope() as session:
                session.execute(insert(Sale), rows)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Insert into {SALES_TABLE} failed: {e}") from e

        logger.info(f"Inserted {len(rows)} sale rows")
        return True

    def insert_report(self, header: Dict[str, Any], rows: List[Dict[str, Any]]) -> int:
        """
        Insert header and rows in a single transaction.

        Rows get report_header_id set here. Nothing is committed if any
        insert fails.

        Returns:
            int: generated header id

        Raises:
            PersistenceError: If any insert fails
        """
        try:
            with self.session_manager.session_scope() as session:
                record = ReportHeader(**header)
                session.add(record)
                session.flush()
                header_id = record.id
                if rows:
                    session.execute(
                        insert(Sale),
                        [{**row, 'report_header_id': header_id} for row in rows],
                    )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Atomic report insert failed: {e}") from e

        logger.info(f"Inserted report header id={header_id} with {len(rows)} sale rows")
        return header_id
