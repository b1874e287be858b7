"""ArUco fiducial detection and single-marker pose estimation."""

from .config import FiducialConfig, load_config
from .node import FiducialsNode
from .worker import FiducialWorker

__all__ = ["FiducialConfig", "FiducialsNode", "FiducialWorker", "load_config"]
