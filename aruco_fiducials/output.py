from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import paho.mqtt.client as mqtt

from .config import MqttConfig
from .fid_types import FiducialArray, FiducialTransformArray, TransformStamped
from .services.csv_writer import CsvWriter
from .services.storage import TRANSFORMS_CSV, VERTICES_CSV


class OutputSink(ABC):
    @abstractmethod
    def open(self, session_dir: Optional[Path]) -> None: ...

    @abstractmethod
    def write_vertices(self, frame_idx: int, vertices: FiducialArray) -> None: ...

    @abstractmethod
    def write_transforms(self, frame_idx: int, transforms: FiducialTransformArray) -> None: ...

    @abstractmethod
    def send_transform(self, transform: TransformStamped) -> None: ...

    @abstractmethod
    def close(self) -> None: ...


class CsvOutput(OutputSink):
    def __init__(self, filename: str = TRANSFORMS_CSV, vertices_filename: str = VERTICES_CSV):
        self.filename = filename
        self.vertices_filename = vertices_filename
        self._writer: Optional[CsvWriter] = None
        self._vertices: Optional[CsvWriter] = None

    def open(self, session_dir: Optional[Path]) -> None:
        if session_dir is None:
            return
        self._writer = CsvWriter(str(Path(session_dir) / self.filename))
        self._writer.open()
        self._vertices = CsvWriter(
            str(Path(session_dir) / self.vertices_filename), header=CsvWriter.VERTICES_HEADER
        )
        self._vertices.open()

    def write_vertices(self, frame_idx: int, vertices: FiducialArray) -> None:
        if self._vertices is None:
            return
        ts_unix = time.time()
        for fid in vertices.fiducials:
            self._vertices.append_row(CsvWriter.vertices_row(ts_unix, frame_idx, fid))

    def write_transforms(self, frame_idx: int, transforms: FiducialTransformArray) -> None:
        if self._writer is None:
            return
        ts_unix = time.time()
        for ft in transforms.transforms:
            self._writer.append(ts_unix, frame_idx, ft)

    def send_transform(self, transform: TransformStamped) -> None:
        return None

    def close(self) -> None:
        for w in (self._writer, self._vertices):
            if w is not None:
                w.close()
        self._writer = None
        self._vertices = None


class MqttOutput(OutputSink):
    """Publishes each record as one CSV line under ``<topic_prefix>/...``."""

    def __init__(
        self,
        config: MqttConfig,
        client: Any = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.log = logger or logging.getLogger(__name__)
        self._client = client
        self._owns_client = client is None

    def _topic(self, name: str) -> str:
        return f"{self.config.topic_prefix.rstrip('/')}/{name}"

    def open(self, session_dir: Optional[Path]) -> None:
        if self._client is None:
            client = mqtt.Client(
                mqtt.CallbackAPIVersion.VERSION2,
                client_id=self.config.client_id,
            )
            client.connect(self.config.broker_ip, self.config.broker_port, 60)
            client.loop_start()
            self._client = client
            self.log.info("MQTT publishing to %s:%d", self.config.broker_ip, self.config.broker_port)

    def _publish(self, name: str, line: str) -> None:
        if self._client is None:
            return
        try:
            self._client.publish(self._topic(name), line, qos=self.config.qos)
        except Exception as e:
            self.log.warning("MQTT publish failed: %s", e)

    def write_vertices(self, frame_idx: int, vertices: FiducialArray) -> None:
        ts_unix = time.time()
        for fid in vertices.fiducials:
            self._publish("fiducial_vertices", CsvWriter.to_csv_line(CsvWriter.vertices_row(ts_unix, frame_idx, fid)))

    def write_transforms(self, frame_idx: int, transforms: FiducialTransformArray) -> None:
        ts_unix = time.time()
        for ft in transforms.transforms:
            self._publish("fiducial_transforms", CsvWriter.to_csv_line(CsvWriter.transform_row(ts_unix, frame_idx, ft)))

    def send_transform(self, transform: TransformStamped) -> None:
        row = [
            transform.stamp,
            transform.frame_id,
            transform.child_frame_id,
            *transform.translation,
            *transform.rotation,
        ]
        self._publish("tf", CsvWriter.to_csv_line(row))

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.loop_stop()
            self._client.disconnect()
        self._client = None


class NullOutput(OutputSink):
    def open(self, session_dir: Optional[Path]) -> None:
        return None

    def write_vertices(self, frame_idx: int, vertices: FiducialArray) -> None:
        return None

    def write_transforms(self, frame_idx: int, transforms: FiducialTransformArray) -> None:
        return None

    def send_transform(self, transform: TransformStamped) -> None:
        return None

    def close(self) -> None:
        return None
