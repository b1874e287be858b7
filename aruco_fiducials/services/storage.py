"""On-disk layout of one fiducial session.

    <root>/<name>_<YYYYmmdd_HHMMSS>/
        config.json
        transforms.csv
        vertices.csv
        frames/f000001.jpg
        annotated/f000001_fiducials.jpg
        logs/session.log
"""

from __future__ import annotations

import json
from pathlib import Path
from time import strftime
from typing import Any, Optional

import cv2

from ..fid_types import Frame

TRANSFORMS_CSV = "transforms.csv"
VERTICES_CSV = "vertices.csv"
SESSION_LOG = "session.log"


class SessionStorage:
    def __init__(self, root: str | Path, name: str = "fiducials"):
        self.root = Path(root)
        self.name = name
        self.session_dir: Optional[Path] = None

    def _path(self, *parts: str) -> Path:
        if self.session_dir is None:
            raise RuntimeError("session not started, call begin() first")
        return self.session_dir.joinpath(*parts)

    @property
    def frames_dir(self) -> Path:
        return self._path("frames")

    @property
    def annotated_dir(self) -> Path:
        return self._path("annotated")

    @property
    def logs_dir(self) -> Path:
        return self._path("logs")

    @property
    def transforms_csv(self) -> Path:
        return self._path(TRANSFORMS_CSV)

    @property
    def vertices_csv(self) -> Path:
        return self._path(VERTICES_CSV)

    @property
    def log_path(self) -> Path:
        return self._path("logs", SESSION_LOG)

    def begin(self) -> Path:
        self.session_dir = self.root / f"{self.name}_{strftime('%Y%m%d_%H%M%S')}"
        for d in (self.frames_dir, self.annotated_dir, self.logs_dir):
            d.mkdir(parents=True, exist_ok=True)
        return self.session_dir

    def save_frame(self, frame: Frame) -> Path:
        """Raw frame as received, no drawings."""
        p = self.frames_dir / f"f{frame.idx:06d}.jpg"
        cv2.imwrite(str(p), frame.image)
        return p

    def save_annotated(self, idx: int, image) -> Path:
        p = self.annotated_dir / f"f{idx:06d}_fiducials.jpg"
        cv2.imwrite(str(p), image)
        return p

    def write_manifest(self, config: dict[str, Any]) -> Path:
        p = self._path("config.json")
        with open(p, "w", encoding="utf-8") as fp:
            json.dump(config, fp, indent=2)
        return p
