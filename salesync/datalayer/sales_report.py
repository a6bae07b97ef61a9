"""
Sales Forecast Report to Datastore Pipeline

Fetches the "Daily Export - Sales Forecast_Report.xml" file from SharePoint,
maps it to one report header and one row per <sale>, and inserts them into
the configured datastore (REST or SQL).

Flow (strictly sequential, nothing is retried):
    token → file download → XML parse → header insert → sale rows insert

Features:
- Every field is optional in the export; missing values become "", 0 or False
- Numbers are read from their leading numeric prefix ("12.5abc" → 12.5, "N/A" → 0)
- Sale rows keep document order
- Header and rows are two separate writes: a failed row insert leaves the
  header persisted. Re-running creates a new header and duplicate rows.
  With atomic=True (SYNC_ATOMIC) both go into a single transaction instead.

Usage:
    salesync sync
    salesync load export.xml
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError

from salesync.common import (
    ConfigurationError,
    DatastoreBackend,
    HTTPClient,
    PersistenceError,
    ReportParseError,
    RestReportStore,
    SessionManager,
    SharePointClient,
    SqlReportStore,
    SyncConfig,
    convert_to_bool,
    convert_to_float,
    convert_to_int,
    convert_to_text,
    create_engine_from_config,
)
from salesync.common.stores import ReportStore


logger = logging.getLogger(__name__)


# =============================================================================
# Field Mapping
# =============================================================================
# (column, selector, converter). Selectors use descendant syntax: each
# space-separated tag may be nested at any depth below the previous one.

HEADER_FIELDS: List[Tuple[str, str, Callable[[Optional[str]], Any]]] = [
    ('company_name', 'companyName', convert_to_text),
    ('report_name', 'reportName', convert_to_text),
    ('created_datetime', 'createdDateTime', convert_to_text),
    ('locations', 'geographyReportViewParameter valueName', convert_to_text),
    ('date_range_type', 'dateRangeWithTomorrowType', convert_to_text),
    ('start_date', 'startDate', convert_to_text),
    ('end_date', 'endDate', convert_to_text),
    ('total_loss_flag', 'totalLossReportViewParameter flag', convert_to_bool),
    ('carrier_name', 'carrierReportViewParameter carrierName', convert_to_text),
    ('vehicle_done_type', 'vehicleDoneTypeReportViewParameter vehicleDoneType', convert_to_text),
]

# Sale children are named after their column
SALE_FIELDS: List[Tuple[str, Callable[[Optional[str]], Any]]] = [
    ('row_index', convert_to_int),
    ('workfile_id', convert_to_text),
    ('repair_facility_name', convert_to_text),
    ('repair_facility_number', convert_to_text),
    ('franchise_id', convert_to_text),
    ('vehicle_out_datetime', convert_to_text),
    ('owner_name', convert_to_text),
    ('repair_order_number', convert_to_text),
    ('vehicle_year_make_model', convert_to_text),
    ('vehicle_make_name', convert_to_text),
    ('service_writer_display_name', convert_to_text),
    ('carrier_name', convert_to_text),
    ('master_carrier_name', convert_to_text),
    ('is_total_loss', convert_to_bool),
    ('primary_referral_name', convert_to_text),
    ('primary_poi', convert_to_text),
    ('owner_postal_code', convert_to_text),
    ('repair_plan_name', convert_to_text),
    ('part_amount', convert_to_float),
    ('labor_amount', convert_to_float),
    ('material_amount', convert_to_float),
    ('other_amount', convert_to_float),
    ('adjustment_amount', convert_to_float),
    ('subtotal_amount', convert_to_float),
    ('tax_amount', convert_to_float),
    ('total_amount', convert_to_float),
    ('insurance_agent_name', convert_to_text),
    ('posted_date', convert_to_text),
    ('repair_completed_datetime', convert_to_text),
    ('customer_custom_field_name_1', convert_to_text),
    ('customer_custom_field_name_2', convert_to_text),
    ('primary_referral_note', convert_to_text),
]


@dataclass
class SyncResult:
    """Outcome of one successful sync run."""
    header_id: Any
    rows_inserted: int


# =============================================================================
# XML Parsing
# =============================================================================

def parse_report_xml(content: Union[str, bytes]) -> ET.Element:
    """
    Parse the report export and strip XML namespaces.

    Args:
        content: XML text or bytes

    Returns:
        ET.Element: document root

    Raises:
        ReportParseError: If the content is not well-formed XML
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise ReportParseError(f"Failed to parse XML document: {e}") from e

    _strip_namespaces(root)
    return root


def _strip_namespaces(root: ET.Element) -> None:
    """Remove XML namespaces from all elements in-place."""
    for elem in root.iter():
        if isinstance(elem.tag, str) and "}" in elem.tag:
            elem.tag = elem.tag.split("}", 1)[1]


def _select_all(scope: ET.Element, path: Sequence[str]) -> List[ET.Element]:
    """
    All descendants of scope matching a descendant selector, in document order.
    """
    head, rest = path[0], path[1:]
    found = [elem for elem in scope.iter(head) if elem is not scope]
    if not rest:
        return found

    order = {id(elem): i for i, elem in enumerate(scope.iter())}
    matches = {}
    for elem in found:
        for match in _select_all(elem, rest):
            matches[id(match)] = match
    return sorted(matches.values(), key=lambda elem: order[id(elem)])


def select_first(scope: Optional[ET.Element], selector: str) -> Optional[ET.Element]:
    """
    First descendant of scope matching selector (e.g. "carrierReportViewParameter carrierName").
    """
    if scope is None:
        return None
    matches = _select_all(scope, selector.split())
    return matches[0] if matches else None


def text_content(elem: Optional[ET.Element]) -> Optional[str]:
    """Concatenated text of elem and all its descendants, None if elem is missing."""
    if elem is None:
        return None
    return ''.join(elem.itertext())


def _find_first(root: ET.Element, tag: str) -> Optional[ET.Element]:
    """First element named tag in document order, root included."""
    return next(root.iter(tag), None)


# =============================================================================
# Record Transformation
# =============================================================================

def extract_header(root: ET.Element) -> Dict[str, Any]:
    """
    Map the first <header> element to a report header record.

    A document without <header> gives a header with every field defaulted.

    Args:
        root: Parsed document root

    Returns:
        dict: header record without id
    """
    header = _find_first(root, 'header')
    if header is None:
        logger.warning("Report has no <header> element; using defaults")

    return {
        column: converter(text_content(select_first(header, selector)))
        for column, selector, converter in HEADER_FIELDS
    }


def transform_sale(sale: ET.Element) -> Dict[str, Any]:
    """
    Map one <sale> element to a sale record (no report_header_id yet).
    """
    return {
        column: converter(text_content(select_first(sale, column)))
        for column, converter in SALE_FIELDS
    }


def extract_sales(root: ET.Element) -> List[Dict[str, Any]]:
    """
    Map every <sale> element, in document order.

    Args:
        root: Parsed document root

    Returns:
        list: sale records without report_header_id
    """
    return [transform_sale(sale) for sale in root.iter('sale')]


def extract_report(root: ET.Element) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    """Header record and sale records of a parsed report."""
    return extract_header(root), extract_sales(root)


# =============================================================================
# Data Operations
# =============================================================================

def sync_report(root: ET.Element, store: ReportStore, atomic: bool = False) -> SyncResult:
    """
    Persist a parsed report: header first, then all sale rows in one batch.

    A header insert failure propagates before any row insert is attempted.
    A row insert failure propagates too, but the header stays persisted;
    nothing is rolled back and nothing is retried.

    Args:
        root: Parsed document root
        store: Datastore exposing insert_header / insert_rows
        atomic: Write header and rows in one transaction (store must
            provide insert_report)

    Returns:
        SyncResult: generated header id and number of rows inserted

    Raises:
        ConfigurationError: If atomic is requested but the store cannot do it
        PersistenceError: If an insert fails
    """
    header, sales = extract_report(root)
    logger.info(
        f"Extracted report '{header['report_name']}' ({header['company_name']}) "
        f"with {len(sales)} sale rows"
    )

    if atomic:
        insert_report = getattr(store, 'insert_report', None)
        if insert_report is None:
            raise ConfigurationError(
                f"{type(store).__name__} does not support atomic report inserts"
            )
        header_id = insert_report(header, sales)
        return SyncResult(header_id=header_id, rows_inserted=len(sales))

    header_id = store.insert_header(header)

    for sale in sales:
        sale['report_header_id'] = header_id

    store.insert_rows(sales)
    return SyncResult(header_id=header_id, rows_inserted=len(sales))


def build_store(config: SyncConfig, http_client: HTTPClient) -> ReportStore:
    """
    Create the datastore selected by config.backend.

    The SQL backend creates its tables if they are missing.

    Raises:
        PersistenceError: If the SQL database cannot be reached or set up
    """
    if config.backend == DatastoreBackend.SQL:
        try:
            engine = create_engine_from_config(config.database)
            store = SqlReportStore(SessionManager(engine))
            store.create_tables()
        except SQLAlchemyError as e:
            raise PersistenceError(f"SQL datastore unavailable: {e}") from e
        return store

    return RestReportStore(http_client, config.rest.url, config.rest.service_key)


def run_sync(
    config: SyncConfig,
    http_client: Optional[HTTPClient] = None,
    store: Optional[ReportStore] = None
) -> SyncResult:
    """
    Full sync: authenticate, download the report, parse and persist it.

    Args:
        config: Loaded SyncConfig
        http_client: Optional shared client (closed here only if created here)
        store: Optional datastore; built from config when omitted

    Returns:
        SyncResult

    Raises:
        SyncError: Any step's failure, unchanged
    """
    owns_client = http_client is None
    if owns_client:
        http_client = HTTPClient(default_timeout=config.http_timeout, total_retries=0)

    try:
        sharepoint = SharePointClient(
            http_client=http_client,
            client_id=config.sharepoint.client_id,
            client_secret=config.sharepoint.client_secret,
            tenant_id=config.sharepoint.tenant_id,
            site=config.sharepoint.site,
        )

        logger.info("Starting SharePoint authentication...")
        token = sharepoint.get_access_token()
        xml_content = sharepoint.fetch_file(config.sharepoint.file_path, token)
        root = parse_report_xml(xml_content)

        if store is None:
            store = build_store(config, http_client)

        result = sync_report(root, store, atomic=config.atomic)
        logger.info(f"Sync complete: header_id={result.header_id}, rows={result.rows_inserted}")
        return result

    finally:
        if owns_client:
            http_client.close()


def load_report_file(path: Union[str, Path], store: ReportStore, atomic: bool = False) -> SyncResult:
    """
    Persist a report export read from a local file (no SharePoint access).
    """
    content = Path(path).read_bytes()
    return sync_report(parse_report_xml(content), store, atomic=atomic)
