from __future__ import annotations

import math

import pytest

from cardiacalc.bands import Band, band_table, classify, interpret_band


def test_band_table_requires_descending_lower_bounds() -> None:
    with pytest.raises(ValueError):
        band_table(Band(1.0, "a", 0, "a"), Band(2.0, "b", 0, "b"), Band(-math.inf, "c", 0, "c"))


def test_band_table_must_end_at_negative_infinity() -> None:
    with pytest.raises(ValueError):
        band_table(Band(2.0, "a", 0, "a"), Band(1.0, "b", 0, "b"))


def test_first_match_and_inclusive_edges() -> None:
    bands = band_table(
        Band(10.0, "high", 2, "high", inclusive=False),
        Band(5.0, "mid", 1, "mid"),
        Band(-math.inf, "low", 0, "low"),
    )
    assert classify(10.0, bands).key == "mid"
    assert classify(10.0001, bands).key == "high"
    assert classify(5.0, bands).key == "mid"
    assert classify(4.9999, bands).key == "low"
    assert classify(-1e9, bands).key == "low"


def test_nan_is_not_classified() -> None:
    bands = band_table(Band(-math.inf, "any", 0, "any"))
    with pytest.raises(ValueError):
        classify(float("nan"), bands)


def test_interpret_band_uses_band_text_unless_overridden() -> None:
    band = Band(0.0, "Label", 3, "key", "band text")
    assert interpret_band(band).display_text == "band text"
    interp = interpret_band(band, "custom")
    assert (interp.label, interp.severity, interp.band, interp.display_text) == ("Label", 3, "key", "custom")
