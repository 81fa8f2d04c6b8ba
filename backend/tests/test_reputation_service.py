"""Tests for the reputation ledger."""

from datetime import timedelta
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from models.reporter import ReporterProfile
from services.errors import ConcurrentModificationError
from services.reputation_service import (
    ReputationLedger,
    is_first_after_rain,
    level_for,
    level_progress,
    next_streak,
    points_for,
    reports_today_count,
    weight_for,
)


def _profile(now, reputation=0, report_count=5, **kwargs):
    return ReporterProfile(
        id="kim", reputation=reputation, report_count=report_count, joined_at=now, **kwargs
    )


class TestWeights:
    def test_unknown_reporter_weight(self):
        assert weight_for(None) == 0.5

    def test_new_reporter_weight(self, now):
        assert weight_for(_profile(now, reputation=5000, report_count=2)) == 0.7

    @pytest.mark.parametrize(
        "reputation,weight",
        [(0, 1.0), (99, 1.0), (100, 1.5), (499, 1.5), (500, 2.0), (1999, 2.0), (2000, 3.0)],
    )
    def test_weight_steps(self, now, reputation, weight):
        assert weight_for(_profile(now, reputation=reputation)) == weight

    @pytest.mark.parametrize(
        "reputation,level",
        [(0, "rookie"), (100, "regular"), (500, "local"), (2000, "legend"), (10_000, "legend")],
    )
    def test_levels_share_thresholds(self, reputation, level):
        assert level_for(reputation) == level

    def test_anonymous_weight_without_lookup(self, mock_dynamodb_table):
        ledger = ReputationLedger(mock_dynamodb_table)
        assert ledger.weight_of("anonymous") == 0.5
        assert ledger.weight_of("") == 0.5
        mock_dynamodb_table.get_item.assert_not_called()


class TestLevelProgress:
    def test_rookie_progress(self):
        progress = level_progress(30)
        assert progress.current == "rookie"
        assert progress.next == "regular"
        assert progress.points_to_next == 70
        assert progress.pct == 30

    def test_legend_is_complete(self):
        progress = level_progress(2500)
        assert progress.current == "legend"
        assert progress.next is None
        assert progress.pct == 100


class TestPoints:
    def test_base_points(self, make_report):
        assert points_for(make_report(), first_after_rain=False) == 10

    def test_first_after_rain_bonus(self, make_report):
        assert points_for(make_report(), first_after_rain=True) == 30

    def test_photo_bonus_requires_verified_channel(self, make_report):
        photo = ["https://img.example/a.jpg"]
        verified = make_report(photos=photo, source="verified")
        anonymous = make_report(photos=photo, source="anonymous")
        assert points_for(verified, first_after_rain=False) == 15
        assert points_for(anonymous, first_after_rain=False) == 10

    def test_first_after_rain_needs_recent_rain(self, now):
        assert not is_first_after_rain([], recently_rained=False, now=now)
        assert is_first_after_rain([], recently_rained=True, now=now)

    def test_first_after_rain_six_hour_lookback(self, now, make_report):
        five_hours = [make_report(reporter_id="other", minutes_ago=300)]
        seven_hours = [make_report(reporter_id="other", minutes_ago=420)]
        assert not is_first_after_rain(five_hours, True, now)
        assert is_first_after_rain(seven_hours, True, now)


class TestStreak:
    def test_first_report(self, now):
        assert next_streak(None, 0, now) == 1

    def test_same_day_unchanged(self, now):
        assert next_streak(now - timedelta(hours=2), 4, now) == 4

    def test_yesterday_increments(self, now):
        assert next_streak(now - timedelta(days=1), 4, now) == 5

    def test_gap_resets(self, now):
        assert next_streak(now - timedelta(days=3), 4, now) == 1

    def test_reports_today_resets_on_new_day(self, now):
        profile = _profile(now, today_report_count=7, last_report_at=now - timedelta(days=1))
        assert reports_today_count(profile, now) == 0
        same_day = _profile(now, today_report_count=7, last_report_at=now - timedelta(hours=1))
        assert reports_today_count(same_day, now) == 7


class TestLedgerRecord:
    def test_new_reporter_rain_bonus(self, ledger, make_report, now):
        """Zero-reputation reporter first at a park during rain gains 30 and stays rookie."""
        report = make_report(reporter_id="kim", minutes_ago=0)

        profile = ledger.record("kim", report, "les-coleman", first_after_rain=True, now=now)

        assert profile.reputation == 30
        assert profile.level == "rookie"
        assert profile.report_count == 1
        assert profile.today_report_count == 1
        assert profile.streak == 1
        assert profile.parks == ["les-coleman"]
        assert profile.joined_at == now

    def test_no_rain_bonus_unless_first_after_rain(self, ledger, make_report, now):
        report = make_report(reporter_id="kim", minutes_ago=0)

        profile = ledger.record("kim", report, "les-coleman", False, now)

        assert profile.reputation == 10

    def test_anonymous_has_no_profile(self, ledger, make_report, now):
        assert ledger.record("anonymous", make_report(), "les-coleman", True, now) is None
        assert ledger.get_profile("anonymous") is None

    def test_replay_not_counted_twice(self, ledger, make_report, now):
        report = make_report(reporter_id="kim")
        ledger.record("kim", report, "les-coleman", False, now)
        profile = ledger.record("kim", report, "les-coleman", False, now)

        assert profile.report_count == 1
        assert profile.reputation == 10

    def test_reputation_accumulates_and_levels_up(self, ledger, make_report, now):
        for i in range(10):
            report = make_report(reporter_id="kim", minutes_ago=i, notes=f"lap {i}")
            profile = ledger.record("kim", report, "les-coleman", False, now)

        assert profile.reputation == 100
        assert profile.level == "regular"
        assert profile.report_count == 10
        assert ledger.weight_of("kim") == 1.5
        assert ledger.reports_today("kim", now) == 10

    def test_tenure_weight(self, ledger, make_report, now):
        ledger.record("kim", make_report(reporter_id="kim"), "les-coleman", False, now)
        assert ledger.weight_of("kim") == 0.7
        assert ledger.weight_of("stranger") == 0.5

    def test_streak_across_days(self, ledger, make_report, now):
        yesterday = now - timedelta(days=1)
        ledger.record("kim", make_report(reporter_id="kim", minutes_ago=1440), "les-coleman", False, yesterday)
        profile = ledger.record("kim", make_report(reporter_id="kim"), "pier-62", False, now)

        assert profile.streak == 2
        assert profile.today_report_count == 1
        assert profile.parks == ["les-coleman", "pier-62"]

    def test_retries_on_conflict_then_gives_up(self, make_report, now):
        table = Mock()
        table.get_item.return_value = {}
        table.put_item.side_effect = ClientError(
            {"Error": {"Code": "ConditionalCheckFailedException", "Message": "lost"}},
            "PutItem",
        )
        ledger = ReputationLedger(table)

        with pytest.raises(ConcurrentModificationError):
            ledger.record("kim", make_report(reporter_id="kim"), "les-coleman", False, now)
        assert table.put_item.call_count == 5

    def test_other_client_errors_propagate(self, make_report, now):
        table = Mock()
        table.get_item.return_value = {}
        table.put_item.side_effect = ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow"}},
            "PutItem",
        )
        with pytest.raises(ClientError):
            ReputationLedger(table).record(
                "kim", make_report(reporter_id="kim"), "les-coleman", False, now
            )


class TestLeaderboard:
    def test_ordered_by_reputation(self, ledger, make_report, now):
        for i in range(3):
            ledger.record("kim", make_report(reporter_id="kim", notes=str(i)), "les-coleman", False, now)
        ledger.record("lee", make_report(reporter_id="lee"), "les-coleman", True, now)
        ledger.record("ash", make_report(reporter_id="ash"), "les-coleman", False, now)

        ids = [p.id for p in ledger.leaderboard("all", now)]
        assert ids == ["kim", "lee", "ash"]

    def test_week_filters_inactive(self, ledger, make_report, now):
        old = now - timedelta(days=10)
        ledger.record("old", make_report(reporter_id="old"), "les-coleman", False, old)
        ledger.record("new", make_report(reporter_id="new"), "les-coleman", False, now)

        assert [p.id for p in ledger.leaderboard("week", now)] == ["new"]
        assert {p.id for p in ledger.leaderboard("month", now)} == {"new", "old"}

    def test_unknown_period(self, ledger):
        with pytest.raises(ValueError):
            ledger.leaderboard("decade")

    def test_export_stats_shape(self, ledger, make_report, now):
        ledger.record("kim", make_report(reporter_id="kim"), "les-coleman", False, now)

        record = ledger.export_stats(now).to_record()

        assert record["updatedAt"].startswith("2026-06-15")
        reporter = record["reporters"][0]
        assert set(reporter) == {
            "id",
            "reportCount",
            "reputation",
            "level",
            "streak",
            "parks",
            "joinedAt",
            "lastReportAt",
            "todayReportCount",
        }
