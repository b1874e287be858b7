import numpy as np
import pytest

from aruco_fiducials.fid_types import CameraInfo, Frame, MarkerObservation
from aruco_fiducials.output import OutputSink
from aruco_fiducials.strategies.detect_aruco import DetectStrategy


class ScriptedDetector(DetectStrategy):
    def __init__(self, batches=None):
        """Return the queued observation batches one frame at a time."""
        self.batches = list(batches or [])
        self.images = []
        self.reconfigured = []

    def detect(self, image):
        self.images.append(image)
        if not self.batches:
            return []
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return list(batch)

    def reconfigure(self, values):
        self.reconfigured.append(dict(values))
        return dict(values)


class RecordingOutput(OutputSink):
    def __init__(self):
        """Collect everything the node emits."""
        self.opened = None
        self.vertices = []
        self.transforms = []
        self.tf = []
        self.closed = False

    def open(self, session_dir):
        self.opened = session_dir

    def write_vertices(self, frame_idx, vertices):
        self.vertices.append((frame_idx, vertices))

    def write_transforms(self, frame_idx, transforms):
        self.transforms.append((frame_idx, transforms))

    def send_transform(self, transform):
        self.tf.append(transform)

    def close(self):
        self.closed = True


@pytest.fixture
def K():
    return np.array([[100.0, 0.0, 100.0], [0.0, 100.0, 100.0], [0.0, 0.0, 1.0]])


@pytest.fixture
def camera_info(K):
    return CameraInfo(K=K, D=np.zeros(5), frame_id="camera_optical")


@pytest.fixture
def recording_output():
    return RecordingOutput()


@pytest.fixture
def make_frame():
    def _make(idx=1, shape=(200, 200, 3)):
        return Frame(idx, f"ts{idx}", np.full(shape, 255, dtype=np.uint8))
    return _make


@pytest.fixture
def square_obs():
    def _make(marker_id, x0=10.0, y0=10.0, side=100.0):
        corners = np.array(
            [[x0, y0], [x0 + side, y0], [x0 + side, y0 + side], [x0, y0 + side]],
            dtype=np.float64,
        )
        return MarkerObservation(marker_id, corners)
    return _make


@pytest.fixture
def scripted_detector():
    return ScriptedDetector
