"""
InsightFace embedding extractor.

Turns a captured image into a face embedding. The model is loaded by an
explicit `initialize()` call and the extractor instance is passed to
whoever needs it, so nothing depends on process-wide "models loaded" state.
"""

from typing import Any, Optional

import numpy as np

from .config import Config
from .exceptions import DimensionMismatch, ExtractorNotReady, FaceNotFound
from .logging_config import get_logger
from .recognition.embedding import to_embedding
from .recognition.preprocessing import enhance_capture
from .recognition.quality import assess_face

logger = get_logger(__name__)


class FaceExtractor:
    """
    Extracts one embedding per captured image.

    When several faces are detected the one with the highest detection
    score is used (the person standing at the kiosk).
    """

    def __init__(self, config: Config, face_app: Optional[Any] = None):
        """
        Args:
            config: Service configuration
            face_app: Already prepared FaceAnalysis-like object; when given,
                initialize() is a no-op
        """
        self.config = config
        self._face_app = face_app

    @property
    def ready(self) -> bool:
        return self._face_app is not None

    def initialize(self) -> 'FaceExtractor':
        """
        Load InsightFace models.

        Returns:
            self, for chaining
        """
        if self.ready:
            return self

        # Heavy import (onnxruntime), deferred until models are needed
        from insightface.app import FaceAnalysis

        logger.info(f'Initializing InsightFace ({self.config.insightface_model})...')

        face_app = FaceAnalysis(
            name=self.config.insightface_model,
            providers=['CPUExecutionProvider'],
        )
        face_app.prepare(ctx_id=0, det_size=self.config.insightface_det_size)
        self._face_app = face_app

        logger.info(f'✅ InsightFace initialized (det_size={self.config.insightface_det_size})')
        return self

    def extract(self, image: np.ndarray) -> np.ndarray:
        """
        Extract a face embedding from a BGR image.

        Args:
            image: Captured image in BGR format

        Returns:
            Read-only embedding vector

        Raises:
            ExtractorNotReady: If initialize() has not been called
            FaceNotFound: If no face, or no face of acceptable quality, is present
            DimensionMismatch: If the model output length differs from config.embedding_dim
        """
        if not self.ready:
            raise ExtractorNotReady('Face extractor used before initialize()')

        if image is None or getattr(image, 'size', 0) == 0:
            raise FaceNotFound('Captured image is empty')

        prepared = enhance_capture(image, self.config)
        faces = self._face_app.get(prepared)

        if not faces:
            logger.debug('No face detected in capture')
            raise FaceNotFound('No face detected')

        face = max(faces, key=lambda f: float(getattr(f, 'det_score', 0.0)))

        quality = assess_face(image, face.bbox, self.config)
        if not quality.acceptable:
            logger.info(f'Face rejected: {quality.rejection}')
            raise FaceNotFound(f'Face rejected: {quality.rejection}')

        embedding = to_embedding(face.normed_embedding)
        if embedding.size != self.config.embedding_dim:
            raise DimensionMismatch(expected=self.config.embedding_dim, actual=embedding.size)

        logger.debug(
            f'Embedding extracted (faces={len(faces)}, h={quality.height:.0f}px, '
            f'blur={quality.blur_score:.1f})'
        )
        return embedding
