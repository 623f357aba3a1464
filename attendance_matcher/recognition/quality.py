"""
Face quality assessment module.

A captured face is only turned into an embedding if it is large enough
and sharp enough; otherwise the capture is treated as "no face found" so
the kiosk prompts for a retry instead of matching a smeared frame.
"""

from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from ..config import Config


@dataclass(frozen=True)
class FaceQuality:
    height: float
    width: float
    blur_score: float
    brightness: float
    rejection: Optional[str] = None

    @property
    def acceptable(self) -> bool:
        return self.rejection is None


def compute_blur_score(gray_face: np.ndarray) -> float:
    """
    Compute blur score using Laplacian variance.

    Higher values indicate sharper images.
    """
    return float(cv2.Laplacian(gray_face, cv2.CV_64F).var())


def crop_face(image: np.ndarray, bbox: np.ndarray) -> np.ndarray:
    """Crop bbox [x1, y1, x2, y2] from image, clamped to the image bounds."""
    h, w = image.shape[:2]
    x1, y1, x2, y2 = np.asarray(bbox).astype(int)
    x1, y1 = max(0, x1), max(0, y1)
    x2, y2 = min(w, x2), min(h, y2)
    return image[y1:y2, x1:x2]


def assess_face(image_bgr: np.ndarray, bbox: np.ndarray, config: Config) -> FaceQuality:
    """
    Assess the face inside `bbox` of a captured image.

    Criteria:
    - Face height >= min_face_height_pixels
    - Blur score >= min_blur_variance

    Args:
        image_bgr: Full captured image in BGR format
        bbox: Bounding box [x1, y1, x2, y2]
        config: Service configuration

    Returns:
        FaceQuality with metrics and the rejection reason, if any
    """
    face = crop_face(image_bgr, bbox)
    face_height, face_width = face.shape[:2]

    if face.size == 0:
        return FaceQuality(0.0, 0.0, 0.0, 0.0, rejection='face outside image')

    gray_face = cv2.cvtColor(face, cv2.COLOR_BGR2GRAY) if face.ndim == 3 else face
    blur_score = compute_blur_score(gray_face)
    brightness = float(np.mean(gray_face))

    rejection = None
    if face_height < config.min_face_height_pixels:
        rejection = f'face too small ({face_height}px < {config.min_face_height_pixels}px)'
    elif blur_score < config.min_blur_variance:
        rejection = f'face too blurry ({blur_score:.1f} < {config.min_blur_variance:.1f})'

    return FaceQuality(
        height=float(face_height),
        width=float(face_width),
        blur_score=blur_score,
        brightness=brightness,
        rejection=rejection,
    )
