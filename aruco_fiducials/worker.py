from __future__ import annotations

import time
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .capture import BaseCapture, OpenCVCapture, SyntheticCapture
from .config import FiducialConfig
from .fid_types import Frame
from .logging_utils import add_file_handler, setup_logger
from .node import FiducialsNode, annotate
from .output import CsvOutput, MqttOutput, OutputSink
from .services.calib import load_camera_info
from .services.storage import SessionStorage


@dataclass
class SessionSummary:
    session_path: str
    frames_received: int
    frames_processed: int
    csv_path: str
    log_path: str
    avg_fps: float
    errors: int


def default_outputs(config: FiducialConfig) -> list[OutputSink]:
    outputs: list[OutputSink] = [CsvOutput()]
    if config.mqtt is not None and config.mqtt.enabled:
        outputs.append(MqttOutput(config.mqtt))
    return outputs


class FiducialWorker:
    def __init__(
        self,
        config: FiducialConfig,
        logger=None,
        outputs: Optional[list[OutputSink]] = None,
        capture: Optional[BaseCapture] = None,
        node: Optional[FiducialsNode] = None,
    ):
        self.config = config
        self.logger = logger or setup_logger(config.camera_name)
        self.outputs = outputs if outputs is not None else default_outputs(config)
        self.capture = capture
        self.node = node or FiducialsNode(config, outputs=self.outputs, logger=self.logger)
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def _build_capture(self) -> BaseCapture:
        if self.capture is not None:
            return self.capture
        if self.config.dry_run:
            return SyntheticCapture(
                self.config.fps,
                self.config.width,
                self.config.height,
                self.config.dictionary,
                self.config.synthetic_markers,
            )
        return OpenCVCapture(
            self.config.device,
            self.config.fps,
            self.config.width,
            self.config.height,
        )

    def _load_intrinsics(self) -> None:
        if self.config.dry_run:
            return
        path = Path(self.config.calibration_path)
        if not path.exists():
            self.logger.warning("calibration file not found: %s", path)
            return
        self.node.on_camera_info(load_camera_info(str(path), self.config.camera_frame))

    def _process(self, f: Frame, storage: SessionStorage) -> bool:
        result = self.node.on_image(f)
        if result is None:
            return False

        if self.config.publish_images and result.observations:
            draw = annotate(
                f.image,
                result,
                self.node.camera.intrinsics,
                max(0.01, self.config.fiducial_len * 0.5),
            )
            storage.save_annotated(f.idx, draw)

        if self.config.save_frames:
            storage.save_frame(f)

        n_tf = len(result.transforms.transforms) if result.transforms is not None else 0
        self.logger.info(
            "frame=%d fiducials=%d transforms=%d",
            f.idx,
            len(result.observations),
            n_tf,
        )
        return True

    def run(self) -> SessionSummary:
        storage = SessionStorage(self.config.session_root, name=f"{self.config.camera_name}_fiducials")
        session_path = storage.begin()
        storage.write_manifest(self.config.as_dict())
        file_handler = add_file_handler(self.logger, self.config.camera_name, str(storage.log_path))

        cap: Optional[BaseCapture] = None
        received = 0
        processed = 0
        errors = 0
        try:
            for out in self.outputs:
                out.open(storage.session_dir)
            self._load_intrinsics()

            self.logger.info("session started: %s", session_path)
            self.logger.info("config: %s", self.config.as_dict())

            cap = self._build_capture()
            cap.start()
            t0 = time.time()

            while not self._stop_event.is_set():
                if self.config.duration_sec and (time.time() - t0) >= self.config.duration_sec:
                    break
                if self.config.max_frames and received >= self.config.max_frames:
                    break

                f = cap.next_frame()
                if f is None:
                    errors += 1
                    continue
                received += 1
                if self._process(f, storage):
                    processed += 1

            avg = processed / max(1e-6, (time.time() - t0))
            self.logger.info(
                "summary received=%d processed=%d avg_fps=%.2f errors=%d",
                received, processed, avg, errors,
            )
        finally:
            if cap is not None:
                try:
                    cap.stop()
                except Exception as e:
                    self.logger.warning("capture stop failed: %s", e)

            for out in self.outputs:
                try:
                    out.close()
                except Exception as e:
                    self.logger.warning("output close failed: %s", e)

            self.logger.removeHandler(file_handler)
            file_handler.close()

        return SessionSummary(
            str(session_path),
            received,
            processed,
            str(storage.transforms_csv),
            str(storage.log_path),
            avg,
            errors,
        )
