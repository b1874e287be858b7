import csv
import io

from ..fid_types import Fiducial, FiducialTransform


class CsvWriter:
    HEADER = [
        "recorded_at",
        "frame_idx", "fiducial_id",
        "tx", "ty", "tz",
        "qw", "qx", "qy", "qz",
        "image_error", "object_error", "fiducial_area",
    ]
    VERTICES_HEADER = [
        "recorded_at",
        "frame_idx", "fiducial_id",
        "x0", "y0", "x1", "y1", "x2", "y2", "x3", "y3",
    ]

    def __init__(self, csv_path: str, header=None):
        self.csv_path = csv_path
        self.header = list(header or self.HEADER)
        self._opened = False
        self._fh = None
        self._w = None

    def open(self):
        self._fh = open(self.csv_path, "w", newline="")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.header)
        self._opened = True

    def append_row(self, row):
        self._w.writerow(row)

    def append(self, ts_unix, frame_idx, ft: FiducialTransform):
        self.append_row(self.transform_row(ts_unix, frame_idx, ft))

    @staticmethod
    def transform_row(ts_unix, frame_idx, ft: FiducialTransform):
        return [
            f"{ts_unix:.6f}",
            frame_idx, ft.fiducial_id,
            *ft.translation,
            *ft.rotation,
            ft.image_error, ft.object_error, ft.fiducial_area,
        ]

    @staticmethod
    def vertices_row(ts_unix, frame_idx, fid: Fiducial):
        return [
            f"{ts_unix:.6f}",
            frame_idx, fid.fiducial_id,
            fid.x0, fid.y0, fid.x1, fid.y1, fid.x2, fid.y2, fid.x3, fid.y3,
        ]

    @staticmethod
    def to_csv_line(row) -> str:
        buf = io.StringIO()
        w = csv.writer(buf)
        w.writerow(row)
        return buf.getvalue().strip()

    def close(self):
        if self._opened and self._fh:
            self._fh.close()
            self._opened = False
            self._fh = None
            self._w = None
