"""Ordered band tables for turning a number into a category.

A table lists bands from the highest lower bound to the lowest; the first
band whose lower bound the value reaches wins. The last band must start at
``-inf`` so every finite value lands somewhere.
"""

from __future__ import annotations

import math
from typing import NamedTuple, Optional, Tuple

from .models import Interpretation


class Band(NamedTuple):
    lower: float
    label: str
    severity: int
    key: str
    text: str = ""
    inclusive: bool = True  # False: value must be strictly above ``lower``


def band_table(*bands: Band) -> Tuple[Band, ...]:
    if not bands:
        raise ValueError("band table is empty")
    for upper, lower in zip(bands, bands[1:]):
        if not upper.lower > lower.lower:
            raise ValueError(f"bands out of order: {upper.key} before {lower.key}")
    if bands[-1].lower != -math.inf:
        raise ValueError("last band must start at -inf")
    return tuple(bands)


def classify(value: float, bands: Tuple[Band, ...]) -> Band:
    for band in bands:
        if value > band.lower or (band.inclusive and value == band.lower):
            return band
    raise ValueError(f"value {value!r} is not comparable")


def interpret_band(band: Band, display_text: Optional[str] = None) -> Interpretation:
    return Interpretation(
        label=band.label,
        severity=band.severity,
        band=band.key,
        display_text=display_text if display_text is not None else band.text,
    )
