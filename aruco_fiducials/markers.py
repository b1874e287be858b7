"""Render printable ArUco markers for the configured dictionary."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import cv2
import numpy as np

from .strategies.detect_aruco import get_dict


def render_marker(
    dictionary: str | int,
    marker_id: int,
    size_px: int = 200,
    border_bits: int = 1,
    margin_px: int = 0,
) -> np.ndarray:
    """Grayscale marker image, optionally padded with a white quiet zone.

    Args:
        dictionary: Dictionary name (``"5x5_250"``) or OpenCV code
        marker_id: Marker id inside the dictionary
        size_px: Side of the marker itself in pixels
        border_bits: Black border width in bits
        margin_px: White margin added on every side

    Returns:
        (size_px + 2*margin_px) square uint8 image
    """
    d = get_dict(dictionary)
    marker = cv2.aruco.generateImageMarker(d, int(marker_id), int(size_px), borderBits=int(border_bits))
    if margin_px <= 0:
        return marker
    return cv2.copyMakeBorder(
        marker, margin_px, margin_px, margin_px, margin_px,
        cv2.BORDER_CONSTANT, value=255,
    )


def write_markers(
    output_dir: str | Path,
    marker_ids,
    dictionary: str | int = "5x5_250",
    size_px: int = 400,
    margin_px: int = 40,
) -> list[Path]:
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    paths = []
    for marker_id in marker_ids:
        p = out / f"fiducial_{int(marker_id)}.png"
        cv2.imwrite(str(p), render_marker(dictionary, marker_id, size_px, margin_px=margin_px))
        paths.append(p)
    return paths


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Generate printable ArUco fiducials")
    parser.add_argument("--output-dir", default="markers", help="Output directory (default: markers)")
    parser.add_argument("--marker-ids", type=int, nargs="+", required=True, help="Marker ids, e.g. 0 1 2 3")
    parser.add_argument("--dict", default="5x5_250", help="ArUco dictionary (default: 5x5_250)")
    parser.add_argument("--size", type=int, default=400, help="Marker size in pixels (default: 400)")
    parser.add_argument("--margin", type=int, default=40, help="White margin in pixels (default: 40)")
    args = parser.parse_args(argv)

    try:
        paths = write_markers(args.output_dir, args.marker_ids, args.dict, args.size, args.margin)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for p in paths:
        print(f"Created {p}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
