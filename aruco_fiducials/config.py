from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Optional

from .strategies.detect_aruco import validate_detector_params


@dataclass
class MqttConfig:
    """Broker settings for the optional MQTT output."""

    enabled: bool = False
    broker_ip: str = "127.0.0.1"
    broker_port: int = 1883
    topic_prefix: str = "fiducials"
    client_id: str = ""
    qos: int = 0

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class FiducialConfig:
    camera_name: str = "cam"
    device: int | str = 0
    fps: int = 15
    width: int = 1920
    height: int = 1080
    calibration_path: str = "calib/camera.yml"
    camera_frame: str = "camera"
    session_root: str = "data/sessions"
    duration_sec: float = 30.0
    max_frames: Optional[int] = None
    dictionary: str | int = "5x5_250"
    fiducial_len: float = 0.14
    fiducial_len_override: str = ""  # "length: id" or "length: lo-hi", comma separated
    ignore_fiducials: str = ""  # "1,4,8,9-12"
    do_pose_estimation: bool = True
    publish_fiducial_tf: bool = True
    publish_images: bool = False
    enable_detections: bool = True
    frame_decimation: int = 3
    intrinsics_grace_frames: int = 5
    invert_image: bool = False
    dry_run: bool = False
    synthetic_markers: list[int] = field(default_factory=list)  # ids drawn into dry-run frames
    save_frames: bool = False
    mqtt: Optional[MqttConfig] = None
    detector: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "FiducialConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self

    def validate(self) -> "FiducialConfig":
        if self.fiducial_len <= 0:
            raise ValueError(f"fiducial_len must be positive, got {self.fiducial_len}")
        if self.frame_decimation < 1:
            raise ValueError(f"frame_decimation must be >= 1, got {self.frame_decimation}")
        if self.intrinsics_grace_frames < 0:
            raise ValueError("intrinsics_grace_frames must be >= 0")
        self.detector = validate_detector_params(self.detector)
        return self


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        import yaml  # type: ignore
    except Exception as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "YAML config requested but PyYAML is not installed. "
            "Install with: pip install pyyaml"
        ) from exc
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config root must be a mapping")
    return data


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def _text(value: Any) -> str:
    # YAML turns a bare "7" into an int
    return "" if value is None else str(value)


def load_config(path: str | Path) -> FiducialConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON/YAML object")

    cfg = FiducialConfig()
    cfg.camera_name = str(raw.get("camera_name", cfg.camera_name))
    cfg.device = raw.get("device", cfg.device)
    cfg.fps = int(raw.get("fps", cfg.fps))
    cfg.width = int(raw.get("width", cfg.width))
    cfg.height = int(raw.get("height", cfg.height))
    cfg.calibration_path = str(raw.get("calibration_path", cfg.calibration_path))
    cfg.camera_frame = str(raw.get("camera_frame", cfg.camera_frame))
    cfg.session_root = str(raw.get("session_root", cfg.session_root))
    cfg.duration_sec = float(raw.get("duration_sec", cfg.duration_sec))
    cfg.max_frames = _optional_int(raw.get("max_frames", cfg.max_frames))
    cfg.dictionary = raw.get("dictionary", cfg.dictionary)
    cfg.fiducial_len = float(raw.get("fiducial_len", cfg.fiducial_len))
    cfg.fiducial_len_override = _text(raw.get("fiducial_len_override", cfg.fiducial_len_override))
    cfg.ignore_fiducials = _text(raw.get("ignore_fiducials", cfg.ignore_fiducials))
    cfg.do_pose_estimation = bool(raw.get("do_pose_estimation", cfg.do_pose_estimation))
    cfg.publish_fiducial_tf = bool(raw.get("publish_fiducial_tf", cfg.publish_fiducial_tf))
    cfg.publish_images = bool(raw.get("publish_images", cfg.publish_images))
    cfg.enable_detections = bool(raw.get("enable_detections", cfg.enable_detections))
    cfg.frame_decimation = int(raw.get("frame_decimation", cfg.frame_decimation))
    cfg.intrinsics_grace_frames = int(raw.get("intrinsics_grace_frames", cfg.intrinsics_grace_frames))
    cfg.invert_image = bool(raw.get("invert_image", cfg.invert_image))
    cfg.dry_run = bool(raw.get("dry_run", cfg.dry_run))
    cfg.synthetic_markers = [int(m) for m in raw.get("synthetic_markers") or []]
    cfg.save_frames = bool(raw.get("save_frames", cfg.save_frames))

    det_raw = raw.get("detector")
    if det_raw is not None:
        if not isinstance(det_raw, dict):
            raise ValueError("detector must be a mapping of parameter name -> value")
        cfg.detector = dict(det_raw)

    mq_raw = raw.get("mqtt")
    if mq_raw is not None and isinstance(mq_raw, dict):
        mq = MqttConfig()
        mq.enabled = bool(mq_raw.get("enabled", mq.enabled))
        mq.broker_ip = str(mq_raw.get("broker_ip", mq.broker_ip))
        mq.broker_port = int(mq_raw.get("broker_port", mq.broker_port))
        mq.topic_prefix = str(mq_raw.get("topic_prefix", mq.topic_prefix))
        mq.client_id = str(mq_raw.get("client_id", mq.client_id))
        mq.qos = int(mq_raw.get("qos", mq.qos))
        cfg.mqtt = mq

    return cfg.validate()
