from __future__ import annotations

import re

"""SUMMARY line format contract."""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+total=([0-9]+)\s+valid=([0-9]+)\s+invalid=([0-9]+)\s+"
    r"warnings=([0-9]+)\s+errors=([0-9]+)\s+mapped=([0-9]+)/([0-9]+)$"
)


def test_summary_pattern_example_line():
    line = "SUMMARY total=120 valid=118 invalid=2 warnings=3 errors=2 mapped=9/13"
    m = SUMMARY_PATTERN.match(line)
    assert m, "SUMMARY line should match contract regex"
    total, valid, invalid = (int(g) for g in m.groups()[:3])
    assert total == valid + invalid


def test_summary_pattern_rejects_missing_keys():
    assert not SUMMARY_PATTERN.match("SUMMARY total=1 valid=1 invalid=0")
