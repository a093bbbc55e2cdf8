"""
Tests for the timeline layout engine.
"""

from datetime import date, datetime, timezone

import pytest

from tradebarriers.core.timeline import (
    MAX_POSITION,
    MIN_POSITION,
    MIN_SPACING,
    adjust_label_positions,
    build_timeline,
    status_bar_color,
)
from tradebarriers.schemas import AgreementStatus, HistoryEntry


NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def entries(*pairs):
    return [HistoryEntry(status=s, date_entered=d) for s, d in pairs]


class TestAdjustLabelPositions:

    def test_first_label_pinned_to_zero(self):
        assert adjust_label_positions([12.0])[0] == 0.0

    def test_spaced_labels_unchanged(self):
        assert adjust_label_positions([0.0, 30.0, 60.0]) == [0.0, 30.0, 60.0]

    def test_close_label_pushed_right(self):
        assert adjust_label_positions([0.0, 3.0, 50.0]) == [0.0, 7.0, 50.0]

    def test_clamped_to_max(self):
        assert adjust_label_positions([0.0, 99.0]) == [0.0, MAX_POSITION]

    def test_right_half_pushed_right(self):
        assert adjust_label_positions([0.0, 60.0, 62.0]) == [0.0, 60.0, 67.0]

    def test_right_half_overflow_falls_back_left(self):
        assert adjust_label_positions([0.0, 90.0, 93.0]) == [0.0, 90.0, 43.0]

    def test_left_half_falls_back_right(self):
        assert adjust_label_positions([0.0, 45.0, 46.0]) == [0.0, 45.0, 57.0]

    def test_positions_stay_in_bounds(self):
        raw = [0.0, 1.0, 2.0, 3.0, 4.0, 5.0, 96.0, 97.0, 98.0]
        for position in adjust_label_positions(raw)[1:]:
            assert 2.0 <= position <= MAX_POSITION

    @pytest.mark.parametrize("raw", [
        [0.0, 0.0, 0.0, 0.0, 0.0],
        [0.0, 10.0, 11.0, 12.0, 13.0, 14.0, 15.0],
        [0.0, 60.0, 61.0, 62.0, 63.0, 64.0],
        [0.0, 45.0, 46.0, 47.0, 48.0, 49.0, 50.0, 51.0, 52.0],
        [0.0, 96.0, 97.0, 98.0, 99.0, 100.0],
        [float(i) for i in range(101)],
    ], ids=["same-day", "left-crowded", "right-crowded", "center", "tail", "every-percent"])
    def test_neighbours_spaced_unless_clamped(self, raw):
        positions = adjust_label_positions(raw)
        assert len(positions) == len(raw)
        for previous, current in zip(positions, positions[1:]):
            assert (
                abs(current - previous) >= MIN_SPACING - 1e-9
                or current in (MIN_POSITION, MAX_POSITION)
            ), positions

    def test_same_day_cluster_steps_right(self):
        assert adjust_label_positions([0.0] * 5) == [0.0, 7.0, 14.0, 21.0, 28.0]


class TestBuildTimeline:

    def test_empty_history(self):
        assert build_timeline([], NOW) is None

    def test_segments_cover_axis(self):
        layout = build_timeline(entries(
            (AgreementStatus.AWAITING_SPONSORSHIP, date(2024, 1, 1)),
            (AgreementStatus.UNDER_NEGOTIATION, date(2024, 7, 1)),
        ), NOW)

        assert layout.total_days == 366
        assert len(layout.segments) == 2
        assert layout.segments[0].start_position == 0.0
        assert layout.segments[0].end_position == layout.labels[1].position
        assert layout.segments[-1].end_position == 100.0
        assert layout.segments[-1].end_date == date(2025, 1, 1)
        assert layout.end_marker == "Today"
        assert layout.labels[1].raw_position == pytest.approx(182 / 366 * 100)

    def test_input_order_does_not_matter(self):
        layout = build_timeline(entries(
            (AgreementStatus.UNDER_NEGOTIATION, date(2024, 7, 1)),
            (AgreementStatus.AWAITING_SPONSORSHIP, date(2024, 1, 1)),
        ), NOW)
        assert [l.status for l in layout.labels] == [
            AgreementStatus.AWAITING_SPONSORSHIP,
            AgreementStatus.UNDER_NEGOTIATION,
        ]
        assert layout.labels[0].is_first
        assert layout.labels[1].is_last

    def test_same_day_entries_keep_input_order(self):
        layout = build_timeline(entries(
            (AgreementStatus.UNDER_NEGOTIATION, date(2024, 1, 1)),
            (AgreementStatus.AGREEMENT_REACHED, date(2024, 1, 1)),
        ), NOW)
        assert [l.status for l in layout.labels] == [
            AgreementStatus.UNDER_NEGOTIATION,
            AgreementStatus.AGREEMENT_REACHED,
        ]
        assert layout.labels[1].position == MIN_SPACING

    def test_same_day_cluster_labels_spaced(self):
        layout = build_timeline(entries(
            (AgreementStatus.AWAITING_SPONSORSHIP, date(2024, 1, 1)),
            (AgreementStatus.UNDER_NEGOTIATION, date(2024, 1, 1)),
            (AgreementStatus.AGREEMENT_REACHED, date(2024, 1, 1)),
            (AgreementStatus.PARTIALLY_IMPLEMENTED, date(2024, 1, 1)),
        ), NOW)
        positions = [l.position for l in layout.labels]
        for previous, current in zip(positions, positions[1:]):
            assert current - previous >= MIN_SPACING - 1e-9

    def test_deferred_freezes_bar(self):
        layout = build_timeline(entries(
            (AgreementStatus.AWAITING_SPONSORSHIP, date(2024, 1, 1)),
            (AgreementStatus.UNDER_NEGOTIATION, date(2024, 4, 1)),
            (AgreementStatus.DEFERRED, date(2024, 7, 1)),
        ), NOW)

        assert [s.status for s in layout.segments] == [
            AgreementStatus.AWAITING_SPONSORSHIP,
            AgreementStatus.UNDER_NEGOTIATION,
        ]
        assert layout.segments[-1].end_position == 100.0
        assert layout.segments[-1].end_date == date(2025, 1, 1)
        assert layout.labels[-1].hidden
        assert layout.end_marker == "Deferred"

    def test_single_entry_today(self):
        layout = build_timeline(entries((AgreementStatus.IMPLEMENTED, date(2025, 1, 1))), NOW)
        assert layout.total_days == 1
        assert layout.labels[0].position == 0.0
        assert layout.segments[0].width == 100.0
        assert layout.segments[0].color == "bg-green-600"

    def test_to_dict(self):
        layout = build_timeline(entries(
            (AgreementStatus.AWAITING_SPONSORSHIP, date(2024, 1, 1)),
        ), NOW)
        data = layout.to_dict()
        assert data["start_date"] == "2024-01-01"
        assert data["end_marker"] == "Today"
        assert data["segments"][0]["status"] == "Awaiting Sponsorship"
        assert data["labels"][0]["position"] == 0.0


class TestBarColors:

    def test_known_statuses(self):
        assert status_bar_color(AgreementStatus.DEFERRED) == "bg-red-400"
        assert status_bar_color("Under Negotiation") == "bg-yellow-400"

    def test_unknown_status(self):
        assert status_bar_color("Something Else") == "bg-gray-400"
