"""Tests for composite aggregation."""

from datetime import timedelta
from unittest.mock import patch

import pytest

from models.conditions import SiteConditions
from services.aggregation_service import (
    CompositeAggregator,
    compute_composite,
    is_fresh,
    round_half_up,
    weighted_status,
)


def weights(mapping, default=1.0):
    return lambda reporter_id: mapping.get(reporter_id, default)


class TestRounding:
    @pytest.mark.parametrize(
        "value,expected", [(2.25, 2.3), (2.35, 2.4), (3.04, 3.0), (4.95, 5.0), (1.0, 1.0)]
    )
    def test_half_up(self, value, expected):
        assert round_half_up(value) == expected


class TestFreshness:
    def test_within_window(self, make_report, now):
        assert is_fresh(make_report(minutes_ago=239), now)
        assert is_fresh(make_report(minutes_ago=240), now)
        assert not is_fresh(make_report(minutes_ago=241), now)

    def test_stale_flag_excludes(self, make_report, now):
        assert not is_fresh(make_report(minutes_ago=5, stale=True), now)

    def test_reports_before_rain_reset_excluded(self, make_report, now):
        reset_at = now - timedelta(minutes=30)
        assert not is_fresh(make_report(minutes_ago=45), now, reset_at)
        assert is_fresh(make_report(minutes_ago=15), now, reset_at)


class TestComputeComposite:
    def test_weighted_vote(self, make_report, now):
        """dry=1.0 vs wet=2.0+1.0 -> wet."""
        reports = [
            make_report("dry", "a", minutes_ago=10),
            make_report("wet", "b", minutes_ago=20),
            make_report("wet", "c", minutes_ago=30),
        ]
        result = compute_composite(reports, weights({"a": 1.0, "b": 2.0, "c": 1.0}), now)
        assert result.composite_status == "wet"

    def test_heavy_reporter_outweighs_majority(self, make_report, now):
        reports = [
            make_report("dry", "legend", minutes_ago=5),
            make_report("wet", "a", minutes_ago=10),
            make_report("wet", "b", minutes_ago=15),
        ]
        result = compute_composite(reports, weights({"legend": 3.0, "a": 1.0, "b": 1.0}), now)
        assert result.composite_status == "dry"

    def test_tie_goes_to_most_recent_status(self, make_report, now):
        reports = [
            make_report("partially_wet", "a", minutes_ago=5),
            make_report("dry", "b", minutes_ago=10),
        ]
        assert compute_composite(reports, weights({}), now).composite_status == "partially_wet"

        swapped = [
            make_report("dry", "b", minutes_ago=5),
            make_report("partially_wet", "a", minutes_ago=10),
        ]
        assert compute_composite(swapped, weights({}), now).composite_status == "dry"

    def test_vote_is_deterministic(self, make_report, now):
        reports = [make_report(s, f"r{i}", minutes_ago=i) for i, s in enumerate(
            ["dry", "wet", "closed", "wet", "dry", "partially_wet"]
        )]
        w = {f"r{i}": float(i % 3 + 1) for i in range(6)}
        results = {weighted_status(reports, w) for _ in range(20)}
        assert len(results) == 1

    def test_weighted_averages(self, make_report, now):
        reports = [
            make_report("dry", "a", surface=5, crowd=2, minutes_ago=5),
            make_report("dry", "b", surface=2, crowd=None, minutes_ago=10),
        ]
        result = compute_composite(reports, weights({"a": 3.0, "b": 1.0}), now)
        # (5*3 + 2*1) / 4 = 4.25
        assert result.avg_surface == 4.3
        assert result.avg_crowd == 2.0

    def test_hazard_union_first_seen_order(self, make_report, now):
        reports = [
            make_report("wet", "a", hazards=["puddles", "glass"], minutes_ago=5),
            make_report("wet", "b", hazards=["glass", "leaves"], minutes_ago=10),
            make_report("wet", "c", hazards=["cones"], minutes_ago=600),
        ]
        result = compute_composite(reports, weights({}), now)
        assert result.active_hazards == ["puddles", "glass", "leaves"]

    def test_null_when_nothing_fresh(self, make_report, now):
        reports = [make_report("dry", "a", surface=4, minutes_ago=300)]
        result = compute_composite(reports, weights({}), now)
        assert result.composite_status is None
        assert result.avg_surface is None
        assert result.avg_crowd is None
        assert result.active_hazards == []

    def test_status_null_when_fresh_reports_have_none(self, make_report, now):
        reports = [make_report(None, "a", surface=3)]
        result = compute_composite(reports, weights({}), now)
        assert result.composite_status is None
        assert result.avg_surface == 3.0

    def test_weight_looked_up_once_per_reporter(self, make_report, now):
        calls = []

        def weight_of(reporter_id):
            calls.append(reporter_id)
            return 1.0

        reports = [make_report("dry", "a", minutes_ago=i, notes=str(i)) for i in range(5)]
        compute_composite(reports, weight_of, now)
        assert calls == ["a"]


class TestCompositeAggregator:
    def test_aggregate_inserts_at_head(self, aggregator, make_report, now):
        first = make_report("wet", minutes_ago=30)
        second = make_report("dry", minutes_ago=5)
        aggregator.aggregate("les-coleman", now, first)
        conditions = aggregator.aggregate("les-coleman", now, second)

        assert conditions.reports[0] == second
        assert conditions.reports[1] == first
        assert conditions.report_count == 2
        assert conditions.last_report_at == second.created_at
        assert conditions.updated_at == now

    def test_aggregate_persists(self, aggregator, conditions_store, make_report, now):
        aggregator.aggregate("les-coleman", now, make_report("dry", surface=4))

        stored = conditions_store.get("les-coleman")
        assert stored.composite_status == "dry"
        assert stored.avg_surface == 4.0
        assert stored.report_count == 1

    def test_replay_is_noop(self, aggregator, make_report, now):
        report = make_report("dry")
        first = aggregator.aggregate("les-coleman", now, report)
        replay = aggregator.aggregate("les-coleman", now + timedelta(minutes=1), report)

        assert replay.report_count == 1
        assert len(replay.reports) == 1
        assert replay.updated_at == first.updated_at

    def test_cap_archives_overflow(self, aggregator, archive, make_report, now):
        for i in range(22):
            aggregator.aggregate(
                "les-coleman", now, make_report("dry", minutes_ago=60 - i, notes=f"#{i}")
            )

        conditions = aggregator.aggregate("les-coleman", now)
        assert len(conditions.reports) == 20
        assert conditions.report_count == 22
        assert conditions.reports[0].notes == "#21"

        archived = archive.get_day("2026/06/15")
        assert sorted(r.notes for r in archived) == ["#0", "#1"]
        assert all(r.park == "les-coleman" for r in archived)

    def test_recompute_without_new_report(self, aggregator, make_report, now):
        aggregator.aggregate("les-coleman", now, make_report("dry", minutes_ago=200))

        later = aggregator.aggregate("les-coleman", now + timedelta(hours=1))
        assert later.composite_status is None
        assert later.report_count == 1

    def test_uses_ledger_weights(self, aggregator, ledger, make_report, now):
        for i in range(3):
            ledger.record(
                "kim", make_report(reporter_id="kim", notes=str(i)), "les-coleman", False, now
            )
        # kim: 3 reports, 30 points -> rookie weight 1.0; strangers 0.5 each
        aggregator.aggregate("les-coleman", now, make_report("dry", "kim", minutes_ago=3))
        aggregator.aggregate("les-coleman", now, make_report("wet", "s1", minutes_ago=2))
        conditions = aggregator.aggregate(
            "les-coleman", now, make_report("wet", "s2", minutes_ago=1)
        )
        # dry=1.0, wet=0.5+0.5 -> tie, most recent (wet) wins
        assert conditions.composite_status == "wet"

    def test_without_ledger_all_default_weights(
        self, conditions_store, archive, make_report, now
    ):
        aggregator = CompositeAggregator(conditions_store, archive, ledger=None)
        aggregator.aggregate("pier-62", now, make_report("dry", "a", surface=5, minutes_ago=2))
        conditions = aggregator.aggregate(
            "pier-62", now, make_report("wet", "b", surface=2, minutes_ago=1)
        )
        assert conditions.composite_status == "wet"
        assert conditions.avg_surface == 3.5

    def test_empty_park_starts_empty(self, conditions_store):
        assert conditions_store.get("nowhere") == SiteConditions.empty("nowhere")


class TestInsert:
    def test_first_after_rain_on_quiet_park(self, aggregator, make_report, now):
        insertion = aggregator.insert("les-coleman", make_report("wet", "kim"), now, True)

        assert insertion.first_after_rain
        assert not insertion.duplicate
        assert insertion.conditions.report_count == 1

    def test_no_rain_credit_after_recent_report(self, aggregator, make_report, now):
        aggregator.insert("les-coleman", make_report("wet", "lee", minutes_ago=120), now, True)

        insertion = aggregator.insert("les-coleman", make_report("wet", "kim"), now, True)

        assert not insertion.first_after_rain

    def test_report_older_than_lookback_does_not_block_credit(
        self, aggregator, make_report, now
    ):
        aggregator.insert("les-coleman", make_report("wet", "lee", minutes_ago=7 * 60), now)

        insertion = aggregator.insert("les-coleman", make_report("wet", "kim"), now, True)

        assert insertion.first_after_rain

    def test_no_rain_credit_without_rain(self, aggregator, make_report, now):
        insertion = aggregator.insert("les-coleman", make_report("wet", "kim"), now)
        assert not insertion.first_after_rain

    def test_duplicate_keeps_original_rain_credit(self, aggregator, make_report, now):
        report = make_report("wet", "kim")
        aggregator.insert("les-coleman", report, now, True)
        aggregator.insert("les-coleman", make_report("dry", "lee", minutes_ago=5), now, True)

        replay = aggregator.insert("les-coleman", report, now, True)

        assert replay.duplicate
        assert replay.first_after_rain
        assert replay.conditions.report_count == 2

    def test_credit_decided_on_committed_version(
        self, aggregator, conditions_store, make_report, now
    ):
        stale_read = conditions_store.load("les-coleman")
        aggregator.insert("les-coleman", make_report("wet", "kim", minutes_ago=2), now, True)

        real_load = conditions_store.load
        reads = iter([stale_read])

        def load(slug):
            return next(reads, None) or real_load(slug)

        with patch.object(conditions_store, "load", side_effect=load):
            insertion = aggregator.insert(
                "les-coleman", make_report("wet", "lee", minutes_ago=1), now, True
            )

        assert not insertion.first_after_rain
        assert insertion.conditions.report_count == 2
