"""
Image preprocessing module.

Webcam captures are often dim and noisy. Before detection the image goes
through denoising, CLAHE on the luminance channel and a gentle unsharp
mask.
"""

import cv2
import numpy as np

from ..config import Config
from ..logging_config import get_logger

logger = get_logger(__name__)


def enhance_capture(image_bgr: np.ndarray, config: Config) -> np.ndarray:
    """
    Enhance a captured image for face detection.

    Args:
        image_bgr: Captured image in BGR format
        config: Service configuration

    Returns:
        Enhanced image, or the input unchanged when preprocessing is disabled
    """
    if not config.enable_preprocessing:
        return image_bgr

    try:
        denoised = cv2.fastNlMeansDenoisingColored(
            image_bgr,
            None,
            h=config.denoise_strength,
            hColor=config.denoise_strength,
            templateWindowSize=7,
            searchWindowSize=21
        )

        # YCrCb keeps chroma untouched while CLAHE works on luminance
        y, cr, cb = cv2.split(cv2.cvtColor(denoised, cv2.COLOR_BGR2YCrCb))
        clahe = cv2.createCLAHE(clipLimit=config.clahe_clip_limit, tileGridSize=(8, 8))
        balanced = cv2.cvtColor(cv2.merge([clahe.apply(y), cr, cb]), cv2.COLOR_YCrCb2BGR)

        blurred = cv2.GaussianBlur(balanced, (0, 0), 2.0)
        return cv2.addWeighted(balanced, 1.5, blurred, -0.5, 0)

    except cv2.error as e:
        logger.warning(f'Preprocessing failed, using raw capture: {e}')
        return image_bgr
