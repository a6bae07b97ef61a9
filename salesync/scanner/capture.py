"""
Barcode scan capture.

Drives an injected decoder through one capture session:

    camera permission → load decoder → start decode loop
    → first successful decode: stop decoder, append {code, qty} to the
      caller's item list and navigate to /items

Decoding itself belongs to the decoder implementation. Failed decode
attempts (no barcode in frame) are expected and stay silent.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple


logger = logging.getLogger(__name__)

ITEMS_ROUTE = '/items'
BACK = -1
CAMERA_CONSTRAINTS = {'facingMode': 'environment'}


class ScanErrorKind(Enum):
    """Every way a capture session can fail"""
    PERMISSION_DENIED = "permission_denied"
    LOAD_FAILED = "load_failed"
    INIT_FAILED = "init_failed"
    START_FAILED = "start_failed"
    STOP_FAILED = "stop_failed"
    PROCESSING_FAILED = "processing_failed"


# Shown to the user; STOP_FAILED on teardown is only logged
USER_MESSAGES = {
    ScanErrorKind.PERMISSION_DENIED: "Please allow camera access to scan barcodes",
    ScanErrorKind.LOAD_FAILED: "Failed to load scanner. Please try again.",
    ScanErrorKind.INIT_FAILED: "Failed to initialize camera. Please try again.",
    ScanErrorKind.START_FAILED: "Failed to start camera. Please check permissions.",
    ScanErrorKind.STOP_FAILED: "Error stopping scanner.",
    ScanErrorKind.PROCESSING_FAILED: "Error processing scan. Please try again.",
}


class ScanError(Exception):
    """Capture failure tagged with its kind."""

    def __init__(self, kind: ScanErrorKind, message: Optional[str] = None):
        super().__init__(message or USER_MESSAGES[kind])
        self.kind = kind


class Decoder(Protocol):
    """
    Capability the capture session needs from a barcode decoder.

    start() begins a continuous decode loop and reports each attempt through
    on_success(decoded_text) or on_failure(error). stop() ends the loop.
    Both raise on failure.
    """

    def start(
        self,
        constraints: Dict[str, Any],
        config: Dict[str, Any],
        on_success: Callable[[str], None],
        on_failure: Callable[[Any], None]
    ) -> None:
        ...

    def stop(self) -> None:
        ...


@dataclass
class DecoderConfig:
    """Decode loop settings passed to Decoder.start()"""
    fps: int = 10
    qrbox: Tuple[int, int] = (250, 250)
    aspect_ratio: float = 1.0
    formats: List[str] = field(default_factory=lambda: ["EAN_13", "EAN_8", "CODE_128"])

    def as_dict(self) -> Dict[str, Any]:
        return {
            'fps': self.fps,
            'qrbox': {'width': self.qrbox[0], 'height': self.qrbox[1]},
            'aspectRatio': self.aspect_ratio,
            'formatsToSupport': list(self.formats),
        }


class ScanCapture:
    """
    One scan-to-list session.

    Args:
        request_permission: Raises if camera access is denied
        load_decoder: Returns a ready Decoder. May raise ScanError to pick
            the failure kind; any other exception counts as LOAD_FAILED
        navigate: navigate(target, state=None); target is a route or BACK
        notify: Shows a transient message to the user
        state: Navigation state received by the view; its 'items' list is
            extended with the scanned item
        decoder_config: Decode loop settings
    """

    def __init__(
        self,
        request_permission: Callable[[], Any],
        load_decoder: Callable[[], Decoder],
        navigate: Callable[..., None],
        notify: Callable[[str], None],
        state: Optional[Dict[str, Any]] = None,
        decoder_config: Optional[DecoderConfig] = None
    ):
        self.request_permission = request_permission
        self.load_decoder = load_decoder
        self.navigate = navigate
        self.notify = notify
        self.state = dict(state or {})
        self.decoder_config = decoder_config or DecoderConfig()

        self.decoder: Optional[Decoder] = None
        self.initializing = True
        self.error: Optional[ScanErrorKind] = None
        self._running = False
        self._scanned = False

    @property
    def running(self) -> bool:
        return self._running

    def _fail(self, kind: ScanErrorKind, exc: Exception) -> None:
        logger.error(f"Scanner {kind.value}: {exc}")
        self.error = kind
        self.initializing = False
        self.notify(USER_MESSAGES[kind])

    def mount(self) -> None:
        """Check permission, load the decoder and start the decode loop."""
        try:
            self.request_permission()
        except Exception as e:
            self._fail(ScanErrorKind.PERMISSION_DENIED, e)
            return

        try:
            decoder = self.load_decoder()
        except ScanError as e:
            self._fail(e.kind, e)
            return
        except Exception as e:
            self._fail(ScanErrorKind.LOAD_FAILED, e)
            return

        if decoder is None:
            self._fail(ScanErrorKind.INIT_FAILED, ScanError(ScanErrorKind.INIT_FAILED, "no decoder"))
            return

        self.decoder = decoder
        # Running before start(): a decoder may report a hit synchronously
        self._running = True
        try:
            decoder.start(
                dict(CAMERA_CONSTRAINTS),
                self.decoder_config.as_dict(),
                self.on_scan_success,
                self.on_scan_failure,
            )
        except Exception as e:
            self._running = False
            self._fail(ScanErrorKind.START_FAILED, e)
            return

        self.initializing = False

    def _stop(self) -> None:
        if self.decoder is None or not self._running:
            return
        self.decoder.stop()
        self._running = False

    def on_scan_success(self, decoded_text: str) -> None:
        """
        First decode wins: stop the decoder and hand the item to /items.

        Decodes after the first are ignored. If stopping fails the user is
        told and the session stays open for another attempt.
        """
        if self._scanned or not self._running:
            return
        self._scanned = True

        try:
            self._stop()
        except Exception as e:
            logger.error(f"Error stopping scanner: {e}")
            self._scanned = False
            self.error = ScanErrorKind.PROCESSING_FAILED
            self.notify(USER_MESSAGES[ScanErrorKind.PROCESSING_FAILED])
            return

        items = list(self.state.get('items') or [])
        items.append({'code': decoded_text, 'qty': ''})
        logger.info(f"Scanned {decoded_text}; list now has {len(items)} items")
        self.navigate(ITEMS_ROUTE, {**self.state, 'items': items})

    def on_scan_failure(self, error: Any) -> None:
        logger.debug(f"Scan failure: {error}")

    def close(self) -> None:
        """User closed the view: stop the decoder and go back."""
        self.unmount()
        self.navigate(BACK)

    def unmount(self) -> None:
        """Teardown: stop the decoder; a stop failure is logged, never raised."""
        try:
            self._stop()
        except Exception as e:
            logger.error(f"Error stopping scanner: {e}")
            self.error = ScanErrorKind.STOP_FAILED
