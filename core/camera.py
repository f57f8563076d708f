"""
FaceScan-Auth - Camera Frame Source
Process-wide webcam handle over OpenCV VideoCapture
"""

import logging
import time
from typing import Dict, Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class Camera:
    """
    Webcam opened once at startup and released at shutdown

    ``read()`` returns a BGR frame, or None when the device yields nothing.
    """

    def __init__(self, config: Optional[Dict] = None):
        settings = (config or {}).get('camera', {})
        self.index = settings.get('index', 0)
        self.frame_width = settings.get('frame_width', 1280)
        self.frame_height = settings.get('frame_height', 720)
        self.cap: Optional[cv2.VideoCapture] = None

    @property
    def is_open(self) -> bool:
        return self.cap is not None and self.cap.isOpened()

    def open(self, num_attempts: int = 3, delay_seconds: float = 0.5):
        """
        Open the capture device, retrying a few times

        Raises:
            RuntimeError: if the device cannot be opened
        """
        for attempt in range(num_attempts):
            cap = cv2.VideoCapture(self.index)
            if cap.isOpened():
                cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.frame_width)
                cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.frame_height)

                # Discard the first frames while exposure settles
                for _ in range(5):
                    cap.read()

                self.cap = cap
                logger.info(f"Camera {self.index} opened at {self.frame_width}x{self.frame_height}")
                return

            cap.release()
            logger.warning(f"Cannot open camera (attempt {attempt + 1}/{num_attempts})")
            if attempt < num_attempts - 1:
                time.sleep(delay_seconds)

        raise RuntimeError(f"Camera initialization failed (index {self.index})")

    def read(self) -> Optional[np.ndarray]:
        if not self.is_open:
            return None

        ret, frame = self.cap.read()
        if not ret or frame is None or frame.size == 0:
            return None
        return frame

    def release(self):
        if self.cap is not None:
            self.cap.release()
            self.cap = None
            logger.info("Camera released")
