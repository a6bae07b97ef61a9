"""Scan-to-list capture around an injected barcode decoder."""

from .capture import (
    BACK,
    CAMERA_CONSTRAINTS,
    ITEMS_ROUTE,
    USER_MESSAGES,
    Decoder,
    DecoderConfig,
    ScanCapture,
    ScanError,
    ScanErrorKind,
)

__all__ = [
    'BACK',
    'CAMERA_CONSTRAINTS',
    'ITEMS_ROUTE',
    'USER_MESSAGES',
    'Decoder',
    'DecoderConfig',
    'ScanCapture',
    'ScanError',
    'ScanErrorKind',
]
