#!/usr/bin/env python3
"""Generate printable fiducials, e.g. ``create_markers.py --marker-ids 0 1 2``."""

import sys

from aruco_fiducials.markers import main

if __name__ == "__main__":
    sys.exit(main())
