import pytest

from salesync.scanner import (
    BACK,
    ITEMS_ROUTE,
    USER_MESSAGES,
    DecoderConfig,
    ScanCapture,
    ScanError,
    ScanErrorKind,
)


class FakeDecoder:
    """Decoder double; the test drives the decode callbacks by hand."""

    def __init__(self, fail_start=None, fail_stop=None):
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.started_with = None
        self.stop_calls = 0
        self.on_success = None
        self.on_failure = None

    def start(self, constraints, config, on_success, on_failure):
        self.started_with = (constraints, config)
        if self.fail_start:
            raise self.fail_start
        self.on_success = on_success
        self.on_failure = on_failure

    def stop(self):
        self.stop_calls += 1
        if self.fail_stop:
            error, self.fail_stop = self.fail_stop, None
            raise error


class Recorder:
    def __init__(self):
        self.navigations = []
        self.messages = []

    def navigate(self, target, state=None):
        self.navigations.append((target, state))

    def notify(self, message):
        self.messages.append(message)


@pytest.fixture
def ui():
    return Recorder()


def _capture(ui, decoder=None, load=None, permission=None, state=None):
    def request_permission():
        if permission:
            raise permission

    return ScanCapture(
        request_permission=request_permission,
        load_decoder=load or (lambda: decoder),
        navigate=ui.navigate,
        notify=ui.notify,
        state=state,
    )


def test_first_decode_wins(ui):
    decoder = FakeDecoder()
    capture = _capture(ui, decoder, state={'items': [{'code': '111', 'qty': '2'}], 'store': 'A'})
    capture.mount()

    assert capture.initializing is False
    assert capture.running is True

    decoder.on_failure('No barcode in frame')
    decoder.on_success('012345678905')
    decoder.on_success('999999999999')

    assert decoder.stop_calls == 1
    assert ui.navigations == [(ITEMS_ROUTE, {
        'store': 'A',
        'items': [{'code': '111', 'qty': '2'}, {'code': '012345678905', 'qty': ''}],
    })]
    assert ui.messages == []


def test_decode_without_prior_items(ui):
    decoder = FakeDecoder()
    capture = _capture(ui, decoder)
    capture.mount()

    decoder.on_success('4006381333931')

    assert ui.navigations == [(ITEMS_ROUTE, {'items': [{'code': '4006381333931', 'qty': ''}]})]


def test_caller_state_is_not_mutated(ui):
    decoder = FakeDecoder()
    items = [{'code': '111', 'qty': '1'}]
    capture = _capture(ui, decoder, state={'items': items})
    capture.mount()

    decoder.on_success('222')

    assert items == [{'code': '111', 'qty': '1'}]


def test_decoder_started_with_rear_camera_and_formats(ui):
    decoder = FakeDecoder()
    _capture(ui, decoder).mount()

    constraints, config = decoder.started_with
    assert constraints == {'facingMode': 'environment'}
    assert config == DecoderConfig().as_dict()
    assert config['fps'] == 10
    assert config['qrbox'] == {'width': 250, 'height': 250}
    assert config['formatsToSupport'] == ['EAN_13', 'EAN_8', 'CODE_128']


def test_permission_denied(ui):
    decoder = FakeDecoder()
    capture = _capture(ui, decoder, permission=PermissionError('NotAllowedError'))
    capture.mount()

    assert capture.error == ScanErrorKind.PERMISSION_DENIED
    assert capture.initializing is False
    assert decoder.started_with is None
    assert ui.messages == [USER_MESSAGES[ScanErrorKind.PERMISSION_DENIED]]


def test_decoder_load_failure(ui):
    def load():
        raise OSError('script blocked')

    capture = _capture(ui, load=load)
    capture.mount()

    assert capture.error == ScanErrorKind.LOAD_FAILED
    assert ui.messages == [USER_MESSAGES[ScanErrorKind.LOAD_FAILED]]


def test_decoder_load_can_choose_kind(ui):
    def load():
        raise ScanError(ScanErrorKind.INIT_FAILED)

    capture = _capture(ui, load=load)
    capture.mount()

    assert capture.error == ScanErrorKind.INIT_FAILED


def test_missing_decoder_is_init_failure(ui):
    capture = _capture(ui, load=lambda: None)
    capture.mount()

    assert capture.error == ScanErrorKind.INIT_FAILED
    assert ui.messages == [USER_MESSAGES[ScanErrorKind.INIT_FAILED]]


def test_start_failure(ui):
    decoder = FakeDecoder(fail_start=RuntimeError('camera busy'))
    capture = _capture(ui, decoder)
    capture.mount()

    assert capture.error == ScanErrorKind.START_FAILED
    assert capture.running is False
    assert ui.messages == [USER_MESSAGES[ScanErrorKind.START_FAILED]]


def test_stop_failure_on_scan_allows_retry(ui):
    decoder = FakeDecoder(fail_stop=RuntimeError('stop failed'))
    capture = _capture(ui, decoder)
    capture.mount()

    decoder.on_success('111')

    assert capture.error == ScanErrorKind.PROCESSING_FAILED
    assert ui.messages == [USER_MESSAGES[ScanErrorKind.PROCESSING_FAILED]]
    assert ui.navigations == []

    decoder.on_success('111')

    assert decoder.stop_calls == 2
    assert ui.navigations == [(ITEMS_ROUTE, {'items': [{'code': '111', 'qty': ''}]})]


def test_close_stops_and_goes_back(ui):
    decoder = FakeDecoder()
    capture = _capture(ui, decoder)
    capture.mount()

    capture.close()

    assert decoder.stop_calls == 1
    assert capture.running is False
    assert ui.navigations == [(BACK, None)]


def test_unmount_stop_failure_is_logged_not_raised(ui):
    decoder = FakeDecoder(fail_stop=RuntimeError('already stopped'))
    capture = _capture(ui, decoder)
    capture.mount()

    capture.unmount()

    assert capture.error == ScanErrorKind.STOP_FAILED
    assert ui.messages == []


def test_unmount_after_scan_does_not_stop_twice(ui):
    decoder = FakeDecoder()
    capture = _capture(ui, decoder)
    capture.mount()

    decoder.on_success('111')
    capture.unmount()

    assert decoder.stop_calls == 1


def test_decode_after_close_is_ignored(ui):
    decoder = FakeDecoder()
    capture = _capture(ui, decoder)
    capture.mount()
    capture.close()

    decoder.on_success('111')

    assert ui.navigations == [(BACK, None)]
