"""
Dependency gap summary.

Counts gaps per (type, severity) over the four fixed gap types and derives
a RAG status per type: red if any red gap, else amber if any amber gap,
else green (also when the type has no gaps at all).
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from enscope.core.models import GapSeverity, GapType


@dataclass(frozen=True)
class GapSummary:
    counts: dict[str, dict[str, int]]
    overall: dict[str, GapSeverity]


def _empty_counts() -> dict[str, dict[str, int]]:
    return {
        gap_type.value: {severity.value: 0 for severity in GapSeverity}
        for gap_type in GapType
    }


def overall_status(severities: dict[str, int]) -> GapSeverity:
    if severities.get(GapSeverity.RED.value, 0) > 0:
        return GapSeverity.RED
    if severities.get(GapSeverity.AMBER.value, 0) > 0:
        return GapSeverity.AMBER
    return GapSeverity.GREEN


def summarize_gaps(gaps: Iterable[Any]) -> GapSummary:
    """Summarize gap rows (anything with `gap_type` and `severity`)."""
    counts = _empty_counts()
    for gap in gaps:
        gap_type = GapType(gap.gap_type).value
        severity = GapSeverity(gap.severity).value
        counts[gap_type][severity] += 1

    return GapSummary(
        counts=counts,
        overall={gap_type: overall_status(severities) for gap_type, severities in counts.items()},
    )
