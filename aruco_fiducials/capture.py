"""Frame sources feeding the fiducial node."""

from __future__ import annotations

import re
import time
from abc import ABC, abstractmethod
from typing import Any, Sequence

import cv2
import numpy as np

from .fid_types import CaptureError, Frame
from .markers import render_marker

_VIDEO_NODE = re.compile(r"^/dev/video(\d+)$")


def _timestamp() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S")


def resolve_device(device: int | str) -> tuple[int | str, int]:
    """Map a config ``device`` to ``cv2.VideoCapture`` arguments.

    Integers and ``/dev/videoN`` go through V4L2; anything else (file path,
    URL, GStreamer pipeline) is handed to OpenCV with automatic backend.
    """
    if isinstance(device, int):
        return device, cv2.CAP_V4L2
    text = str(device).strip()
    if text.isdigit():
        return int(text), cv2.CAP_V4L2
    match = _VIDEO_NODE.match(text)
    if match:
        return int(match.group(1)), cv2.CAP_V4L2
    return text, cv2.CAP_ANY


class BaseCapture(ABC):
    @abstractmethod
    def start(self) -> None: ...

    @abstractmethod
    def next_frame(self) -> Frame | None: ...

    @abstractmethod
    def stop(self) -> None: ...


class OpenCVCapture(BaseCapture):
    """Camera, video file or stream read through ``cv2.VideoCapture``."""

    def __init__(self, device: int | str, fps: int, width: int, height: int, fourcc: str = "MJPG"):
        self.device = device
        self.fps = fps
        self.width = width
        self.height = height
        self.fourcc = fourcc
        self.cap: Any = None
        self.idx = 0

    def start(self) -> None:
        source, api = resolve_device(self.device)
        self.cap = cv2.VideoCapture(source, api)
        if api == cv2.CAP_V4L2:
            # only live cameras take format requests
            self.cap.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*self.fourcc))
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
            self.cap.set(cv2.CAP_PROP_FPS, self.fps)
        if not self.cap.isOpened():
            raise CaptureError(f"Failed to open frame source: {self.device}")

    def next_frame(self) -> Frame | None:
        ok, img = self.cap.read()
        if not ok:
            return None
        self.idx += 1
        return Frame(self.idx, _timestamp(), img)

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class SyntheticCapture(BaseCapture):
    """White frames at a fixed rate, optionally showing a row of markers.

    Used for dry runs: with ``marker_ids`` set the whole detection path runs
    without a camera attached.
    """

    def __init__(
        self,
        fps: int,
        width: int,
        height: int,
        dictionary: str | int = "5x5_250",
        marker_ids: Sequence[int] = (),
    ):
        self.fps = fps
        self.width = width
        self.height = height
        self.dictionary = dictionary
        self.marker_ids = [int(m) for m in marker_ids]
        self.idx = 0
        self._last = 0.0
        self._image: np.ndarray | None = None

    def _compose(self) -> np.ndarray:
        canvas = np.full((self.height, self.width), 255, dtype=np.uint8)
        if self.marker_ids:
            cell = self.width // len(self.marker_ids)
            side = int(0.6 * min(cell, self.height))
            y0 = (self.height - side) // 2
            for i, marker_id in enumerate(self.marker_ids):
                x0 = i * cell + (cell - side) // 2
                canvas[y0:y0 + side, x0:x0 + side] = render_marker(self.dictionary, marker_id, side)
        return cv2.cvtColor(canvas, cv2.COLOR_GRAY2BGR)

    def start(self) -> None:
        self._image = self._compose()
        self._last = time.time()

    def next_frame(self) -> Frame | None:
        if self._image is None:
            self.start()
        if self.fps > 0:
            wait = (1.0 / self.fps) - (time.time() - self._last)
            if wait > 0:
                time.sleep(wait)
        self._last = time.time()
        self.idx += 1
        return Frame(self.idx, _timestamp(), self._image.copy())

    def stop(self) -> None:
        self._image = None
