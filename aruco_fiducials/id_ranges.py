"""Per-id marker configuration: ignore lists and physical size overrides.

Both settings are given as comma separated text, e.g.::

    ignore_fiducials:      "1,4,8,9-12,30-40"
    fiducial_len_override: "0.2: 7, 0.05: 100-120"

Malformed tokens are logged and skipped; parsing always returns a fresh
container so callers can swap it in wholesale.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Mapping, Optional

from .fid_types import MalformedIdRange, MarkerObservation

_log = logging.getLogger(__name__)


def _parse_id(text: str) -> int:
    s = text.strip()
    if not s.isdigit():
        raise MalformedIdRange(f"not a marker id: {text!r}")
    return int(s)


def expand_id_token(token: str) -> range:
    """Expand ``"7"`` or ``"9-12"`` into an inclusive range of ids."""
    parts = token.split("-")
    if len(parts) == 1:
        fid = _parse_id(parts[0])
        return range(fid, fid + 1)
    if len(parts) == 2:
        lo = _parse_id(parts[0])
        hi = _parse_id(parts[1])
        if lo > hi:
            raise MalformedIdRange(f"range start {lo} is above end {hi}")
        return range(lo, hi + 1)
    raise MalformedIdRange(f"expected id or lo-hi, got {token!r}")


def parse_id_ranges(text: Optional[str], logger: Optional[logging.Logger] = None) -> frozenset[int]:
    log = logger or _log
    ids: set[int] = set()
    for element in (text or "").split(","):
        element = element.strip()
        if not element:
            continue
        try:
            ids.update(expand_id_token(element))
        except MalformedIdRange as exc:
            log.error("Malformed ignore_fiducials: %s (%s)", element, exc)
            continue
        log.info("Ignoring fiducial id(s) %s", element)
    return frozenset(ids)


def parse_size_overrides(text: Optional[str], logger: Optional[logging.Logger] = None) -> dict[int, float]:
    """Parse ``"length: idOrRange"`` elements into an id -> length table."""
    log = logger or _log
    table: dict[int, float] = {}
    for element in (text or "").split(","):
        element = element.strip()
        if not element:
            continue
        try:
            parts = element.split(":")
            if len(parts) != 2:
                raise MalformedIdRange("expected 'length: id' or 'length: lo-hi'")
            try:
                length = float(parts[0])
            except ValueError:
                raise MalformedIdRange(f"bad length {parts[0]!r}") from None
            if not math.isfinite(length) or length <= 0:
                raise MalformedIdRange(f"length must be positive, got {length}")
            ids = expand_id_token(parts[1].strip())
        except MalformedIdRange as exc:
            log.error("Malformed fiducial_len_override: %s (%s)", element, exc)
            continue
        log.info("Setting fiducial id(s) %s length to %f", parts[1].strip(), length)
        for fid in ids:
            table[fid] = length
    return table


class MarkerSizeResolver:
    """Resolve the physical edge length of a marker by id."""

    def __init__(self, default_length: float, overrides: Optional[Mapping[int, float]] = None):
        if not math.isfinite(default_length) or default_length <= 0:
            raise ValueError(f"default marker length must be positive, got {default_length}")
        self.default_length = float(default_length)
        self._overrides = {int(k): float(v) for k, v in (overrides or {}).items()}

    @classmethod
    def from_text(
        cls,
        default_length: float,
        text: Optional[str],
        logger: Optional[logging.Logger] = None,
    ) -> "MarkerSizeResolver":
        return cls(default_length, parse_size_overrides(text, logger))

    @property
    def overrides(self) -> dict[int, float]:
        return dict(self._overrides)

    def resolve(self, marker_id: int) -> float:
        return self._overrides.get(int(marker_id), self.default_length)


def filter_ignored(
    observations: Iterable[MarkerObservation],
    ignore_ids: frozenset[int] | set[int],
    logger: Optional[logging.Logger] = None,
) -> list[MarkerObservation]:
    log = logger or _log
    kept: list[MarkerObservation] = []
    for obs in observations:
        if obs.marker_id in ignore_ids:
            log.info("Ignoring id %d", obs.marker_id)
            continue
        kept.append(obs)
    return kept
