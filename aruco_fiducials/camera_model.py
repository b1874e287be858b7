from __future__ import annotations

import logging
import threading
from typing import Any, Optional

import numpy as np

from .fid_types import CameraIntrinsics

_log = logging.getLogger(__name__)

DIST_COEFFS = 5


class CameraModel:
    """Latch for camera intrinsics: the first valid message wins.

    Intrinsics of a physical camera do not change while the process runs, so
    later messages are dropped instead of re-read.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or _log
        self._lock = threading.Lock()
        self._intrinsics: Optional[CameraIntrinsics] = None

    def ingest(self, K: Any, dist: Any, frame_id: str = "") -> bool:
        with self._lock:
            if self._intrinsics is not None:
                return False

            k = np.asarray(K, dtype=np.float64).reshape(-1)
            if k.size != 9:
                self.logger.error("CameraInfo K must have 9 entries, got %d", k.size)
                return False
            if not np.any(k):
                self.logger.warning("CameraInfo message has invalid intrinsics, K matrix all zeros")
                return False

            d = np.zeros(DIST_COEFFS, dtype=np.float64)
            raw = np.asarray(dist if dist is not None else [], dtype=np.float64).reshape(-1)
            n = min(DIST_COEFFS, raw.size)
            d[:n] = raw[:n]

            self._intrinsics = CameraIntrinsics(
                K=k.reshape(3, 3).copy(),
                dist=d,
                frame_id=str(frame_id or ""),
            )
            self.logger.info("camera intrinsics latched (frame_id=%r)", self._intrinsics.frame_id)
            return True

    def is_ready(self) -> bool:
        with self._lock:
            return self._intrinsics is not None

    @property
    def intrinsics(self) -> Optional[CameraIntrinsics]:
        with self._lock:
            return self._intrinsics
