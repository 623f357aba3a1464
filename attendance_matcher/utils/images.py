"""
Image decoding helpers.

Kiosk clients post captures as data URLs (``data:image/jpeg;base64,...``),
bare base64 strings or raw bytes.
"""

import base64
import binascii
from typing import Union

import cv2
import numpy as np


def decode_image(data: Union[str, bytes]) -> np.ndarray:
    """
    Decode an uploaded capture into a BGR image.

    Args:
        data: Data URL, base64 string or encoded image bytes

    Returns:
        Image as a BGR numpy array

    Raises:
        ValueError: If the payload is not a decodable image
    """
    if isinstance(data, str):
        payload = data.strip()
        if payload.startswith('data:'):
            _, _, payload = payload.partition(',')
        try:
            raw = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f'Invalid base64 image payload: {e}') from e
    elif isinstance(data, (bytes, bytearray)):
        raw = bytes(data)
    else:
        raise ValueError(f'Unsupported image payload type: {type(data).__name__}')

    if not raw:
        raise ValueError('Empty image payload')

    image = cv2.imdecode(np.frombuffer(raw, np.uint8), cv2.IMREAD_COLOR)
    if image is None:
        raise ValueError('Payload is not a decodable image')

    return image
