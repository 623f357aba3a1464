import base64

import cv2
import numpy as np
import pytest

from attendance_matcher.exceptions import FaceNotFound, StoreUnavailable
from attendance_matcher.utils.images import decode_image
from attendance_matcher.utils.timing import format_uptime, retry_with_backoff

from conftest import noise_image


@pytest.mark.parametrize('seconds, expected', [
    (0, '0s'),
    (59.9, '59s'),
    (61, '1m 1s'),
    (3600, '1h 0s'),
    (90061, '1d 1h 1m 1s'),
])
def test_format_uptime(seconds, expected):
    assert format_uptime(seconds) == expected


def test_retry_with_backoff_retries_then_succeeds():
    calls = []
    delays = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise StoreUnavailable('down')
        return 'ok'

    result = retry_with_backoff(
        flaky,
        max_attempts=3,
        initial_delay=0.5,
        backoff_factor=2.0,
        retry_on=(StoreUnavailable,),
        sleep=delays.append,
    )

    assert result == 'ok'
    assert delays == [0.5, 1.0]


def test_retry_with_backoff_reraises_last_error():
    def always_down():
        raise StoreUnavailable('still down')

    with pytest.raises(StoreUnavailable, match='still down'):
        retry_with_backoff(always_down, max_attempts=2, retry_on=(StoreUnavailable,), sleep=lambda _: None)


def test_retry_with_backoff_does_not_retry_other_errors():
    calls = []

    def no_face():
        calls.append(1)
        raise FaceNotFound('no face')

    with pytest.raises(FaceNotFound):
        retry_with_backoff(no_face, max_attempts=5, retry_on=(StoreUnavailable,), sleep=lambda _: None)
    assert len(calls) == 1


def test_retry_with_backoff_requires_an_attempt():
    with pytest.raises(ValueError):
        retry_with_backoff(lambda: None, max_attempts=0)


def test_decode_image_accepts_data_url_base64_and_bytes():
    image = noise_image(8, 8)
    ok, encoded = cv2.imencode('.png', image)
    raw = encoded.tobytes()
    b64 = base64.b64encode(raw).decode()

    for payload in (raw, b64, 'data:image/png;base64,' + b64):
        decoded = decode_image(payload)
        assert np.array_equal(decoded, image)


@pytest.mark.parametrize('payload', [b'', '', 'data:image/png;base64,', '%%%'])
def test_decode_image_rejects_garbage(payload):
    with pytest.raises(ValueError):
        decode_image(payload)


@pytest.mark.parametrize('payload', [50_000_000, 1.5, {'data': 'x'}, ['x'], None])
def test_decode_image_rejects_non_string_payloads(payload):
    with pytest.raises(ValueError, match='Unsupported image payload type'):
        decode_image(payload)
