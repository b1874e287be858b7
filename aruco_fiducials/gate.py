from __future__ import annotations

import threading
from enum import Enum


class GateDecision(str, Enum):
    ADMITTED = "admitted"
    DROPPED_DECIMATION = "dropped_decimation"
    DROPPED_DISABLED = "dropped_disabled"


class DetectionGate:
    """Decides whether an arriving image is processed at all.

    Two independent axes: an enable switch and a decimation counter. While
    disabled every frame is dropped and the counter does not move; while
    enabled the frame seen at counter values 0, n, 2n, ... is admitted.
    """

    def __init__(self, decimation: int = 3, enabled: bool = True):
        if int(decimation) < 1:
            raise ValueError(f"decimation must be a positive integer, got {decimation}")
        self.decimation = int(decimation)
        self._enabled = bool(enabled)
        self._frame_counter = 0
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def frame_counter(self) -> int:
        return self._frame_counter

    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._enabled = bool(enabled)

    def admit(self) -> GateDecision:
        with self._lock:
            if not self._enabled:
                return GateDecision.DROPPED_DISABLED
            counter = self._frame_counter
            self._frame_counter += 1
        if counter % self.decimation == 0:
            return GateDecision.ADMITTED
        return GateDecision.DROPPED_DECIMATION
