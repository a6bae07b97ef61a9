"""Report pipelines: source document → datastore."""

from .sales_report import (
    SyncResult,
    parse_report_xml,
    extract_header,
    extract_sales,
    extract_report,
    sync_report,
    build_store,
    run_sync,
    load_report_file,
)

__all__ = [
    'SyncResult',
    'parse_report_xml',
    'extract_header',
    'extract_sales',
    'extract_report',
    'sync_report',
    'build_store',
    'run_sync',
    'load_report_file',
]
