from __future__ import annotations

from shiftcover.coverage import analyze_coverage
from shiftcover.models import ShiftTemplate


def test_gap_between_morning_and_afternoon() -> None:
    report = analyze_coverage(
        [
            ShiftTemplate(id="pm", start_time="11:00", end_time="15:00"),
            ShiftTemplate(id="am", start_time="06:00", end_time="10:00"),
        ]
    )
    assert report.has_gaps is True
    assert [(gap.start, gap.end, gap.duration) for gap in report.gaps] == [(600, 660, 60)]
    assert [block.template_id for block in report.coverage] == ["am", "pm"]


def test_touching_templates_leave_no_gap() -> None:
    report = analyze_coverage(
        [
            ShiftTemplate(id="am", start_time="06:00", end_time="10:00"),
            ShiftTemplate(id="mid", start_time="10:00", end_time="14:00"),
        ]
    )
    assert report.has_gaps is False
    assert report.gaps == []
    assert len(report.coverage) == 2


def test_only_neighbours_are_compared() -> None:
    # The short middle shift ends before the next starts even though the long one covers it.
    report = analyze_coverage(
        [
            ShiftTemplate(id="long", start_time="06:00", end_time="18:00"),
            ShiftTemplate(id="short", start_time="07:00", end_time="08:00"),
            ShiftTemplate(id="late", start_time="09:00", end_time="12:00"),
        ]
    )
    assert [(gap.start, gap.end) for gap in report.gaps] == [(480, 540)]


def test_inactive_and_unusable_templates_are_ignored() -> None:
    report = analyze_coverage(
        [
            {"id": "am", "startTime": "06:00", "endTime": "10:00"},
            {"id": "off", "startTime": "10:00", "endTime": "11:00", "isActive": False},
            {"id": "night", "startTime": "22:00", "endTime": "02:00"},
            {"id": "pm", "startTime": "12:00", "endTime": "16:00"},
        ]
    )
    assert [block.template_id for block in report.coverage] == ["am", "pm"]
    assert [gap.as_dict() for gap in report.gaps] == [
        {"start": 600, "end": 720, "duration": 120, "label": "10:00-12:00"}
    ]


def test_empty_or_invalid_input() -> None:
    for value in ([], None, "templates"):
        report = analyze_coverage(value)
        assert report.as_dict() == {"hasGaps": False, "gaps": [], "coverage": []}


def test_equal_starts_keep_input_order() -> None:
    templates = [
        ShiftTemplate(id="long", start_time="06:00", end_time="10:00"),
        ShiftTemplate(id="short", start_time="06:00", end_time="08:00"),
        ShiftTemplate(id="late", start_time="09:00", end_time="12:00"),
    ]
    report = analyze_coverage(templates)
    assert [block.template_id for block in report.coverage] == ["long", "short", "late"]
    # Only the neighbour of the late shift is compared, so the short one opens a gap.
    assert [(gap.start, gap.end) for gap in report.gaps] == [(480, 540)]

    swapped = analyze_coverage([templates[1], templates[0], templates[2]])
    assert [block.template_id for block in swapped.coverage] == ["short", "long", "late"]
    assert swapped.gaps == []
