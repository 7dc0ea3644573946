from __future__ import annotations

from typing import Any, List

from .models import CoverageBlock, CoverageGap, CoverageReport
from .time_range import active_windows


def analyze_coverage(templates: Any) -> CoverageReport:
    """Report the blocks spanned by active templates and the gaps between them.

    Templates are ordered by start time (stable for ties) and compared with
    their immediate successor only, so a gap is reported whenever one
    template ends before the next one starts.
    """
    if not isinstance(templates, (list, tuple)):
        return CoverageReport(has_gaps=False, gaps=[], coverage=[])
    windows, _ = active_windows(templates)
    if not windows:
        return CoverageReport(has_gaps=False, gaps=[], coverage=[])
    ordered = sorted(windows, key=lambda item: item[1])

    coverage: List[CoverageBlock] = []
    gaps: List[CoverageGap] = []
    for current, following in zip(ordered, ordered[1:]):
        template, start, end = current
        coverage.append(CoverageBlock(start=start, end=end, template_id=template.id))
        next_start = following[1]
        if end < next_start:
            gaps.append(CoverageGap(start=end, end=next_start))
    last_template, last_start, last_end = ordered[-1]
    coverage.append(CoverageBlock(start=last_start, end=last_end, template_id=last_template.id))
    return CoverageReport(has_gaps=bool(gaps), gaps=gaps, coverage=coverage)
