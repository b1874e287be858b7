import cv2, numpy as np
from pathlib import Path
from typing import Tuple

from ..fid_types import CameraInfo


def load_calib(path: str) -> Tuple[np.ndarray, np.ndarray, tuple[int, int]]:
    if not Path(path).exists():
        raise FileNotFoundError(f"Calibration not found: {path}")
    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
    K = fs.getNode("camera_matrix").mat()
    dist = fs.getNode("dist_coeffs").mat()
    w = int(fs.getNode("image_width").real()); h = int(fs.getNode("image_height").real())
    fs.release()
    return K, dist, (w, h)


def load_camera_info(path: str, frame_id: str = "camera") -> CameraInfo:
    K, dist, _ = load_calib(path)
    return CameraInfo(K=K, D=dist, frame_id=frame_id)
