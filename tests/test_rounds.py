"""Tests for default round selection (analfabet/utils/rounds.py)."""

from datetime import date, datetime, timedelta, timezone

import pytz

from analfabet.utils.rounds import (
    RoundInfo,
    determine_default_round,
    select_round,
    summarize_rounds,
    to_aware_datetime,
    to_local_date,
)

TODAY = date(2024, 6, 12)


def at(day, hour=19):
    return datetime(day.year, day.month, day.day, hour, 0, tzinfo=timezone.utc)


def match(round_number, day, status="scheduled", hour=19):
    return {"round": round_number, "match_date": at(day, hour), "status": status}


class TestDetermineDefaultRound:
    def test_current_unfinished_round_beats_past_and_future(self):
        matches = [
            match(1, TODAY - timedelta(days=7), "finished"),
            match(1, TODAY - timedelta(days=6), "finished"),
            match(2, TODAY, "scheduled"),
            match(2, TODAY - timedelta(days=1), "finished"),
            match(3, TODAY + timedelta(days=5)),
        ]
        assert determine_default_round(matches, today=TODAY) == 2

    def test_single_finished_round_last_week(self):
        matches = [match(1, TODAY - timedelta(days=7), "finished")]
        assert determine_default_round(matches, today=TODAY) == 1

    def test_next_round_starting_tomorrow_is_preferred(self):
        matches = [
            match(2, TODAY - timedelta(days=1), "finished"),
            match(2, TODAY, "live"),
            match(3, TODAY + timedelta(days=1)),
        ]
        assert determine_default_round(matches, today=TODAY) == 3

    def test_empty_input_defaults_to_round_one(self):
        assert determine_default_round([], today=TODAY) == 1

    def test_upcoming_round_when_nothing_is_in_progress(self):
        matches = [
            match(1, TODAY - timedelta(days=10), "finished"),
            match(4, TODAY + timedelta(days=9)),
            match(3, TODAY + timedelta(days=3)),
        ]
        assert determine_default_round(matches, today=TODAY) == 3

    def test_all_finished_returns_last_round(self):
        matches = [
            match(1, TODAY - timedelta(days=14), "finished"),
            match(2, TODAY - timedelta(days=7), "finished"),
        ]
        assert determine_default_round(matches, today=TODAY) == 2

    def test_newest_active_round_wins(self):
        # A postponed match keeps round 1 open
        matches = [
            match(1, TODAY - timedelta(days=8), "postponed"),
            match(2, TODAY - timedelta(days=1)),
        ]
        assert determine_default_round(matches, today=TODAY) == 2

    def test_look_ahead_needs_the_next_consecutive_round(self):
        matches = [
            match(2, TODAY),
            match(4, TODAY + timedelta(days=1)),
        ]
        assert determine_default_round(matches, today=TODAY) == 2

    def test_round_with_postponed_match_is_not_finished(self):
        matches = [match(1, TODAY - timedelta(days=3), "postponed")]
        assert determine_default_round(matches, today=TODAY) == 1

    def test_accepts_objects_with_attributes(self):
        class Row:
            def __init__(self, round_number, match_date, status):
                self.round = round_number
                self.match_date = match_date
                self.status = status

        rows = [
            Row(5, at(TODAY), "scheduled"),
            Row(6, at(TODAY + timedelta(days=4)), "scheduled"),
        ]
        assert determine_default_round(rows, today=TODAY) == 5

    def test_accepts_iso_strings_and_naive_datetimes(self):
        matches = [
            {"round": 1, "match_date": "2024-06-01T19:00:00Z", "status": "finished"},
            {"round": 2, "match_date": datetime(2024, 6, 12, 22, 0), "status": "scheduled"},
        ]
        assert determine_default_round(matches, today=TODAY) == 2

    def test_today_as_datetime(self):
        matches = [match(1, TODAY), match(2, TODAY + timedelta(days=7))]
        assert determine_default_round(matches, today=at(TODAY, 8)) == 1

    def test_malformed_matches_are_skipped(self, caplog):
        matches = [
            {"round": None, "match_date": at(TODAY), "status": "scheduled"},
            {"round": "x", "match_date": at(TODAY), "status": "scheduled"},
            {"round": float("inf"), "match_date": at(TODAY), "status": "scheduled"},
            {"round": 2, "match_date": "not a date", "status": "scheduled"},
            match(3, TODAY + timedelta(days=3)),
        ]
        assert determine_default_round(matches, today=TODAY) == 3
        assert "Skipping match" in caplog.text

    def test_unusable_today_falls_back_to_the_current_date(self, caplog):
        matches = [match(1, TODAY), match(2, TODAY + timedelta(days=7))]
        assert determine_default_round(matches, today="garbage") in (1, 2)
        assert "Unusable 'today' value" in caplog.text

    def test_only_malformed_matches_fall_back_to_round_one(self):
        matches = [{"round": None, "match_date": None, "status": "finished"}]
        assert determine_default_round(matches, today=TODAY) == 1


class TestTimezones:
    def test_late_kickoff_belongs_to_the_local_day(self):
        sao_paulo = pytz.timezone("America/Sao_Paulo")
        # 01:30 UTC on the 13th is 22:30 on the 12th in Sao Paulo
        kickoff = datetime(2024, 6, 13, 1, 30, tzinfo=timezone.utc)
        matches = [
            match(1, TODAY - timedelta(days=2)),
            {"round": 2, "match_date": kickoff, "status": "scheduled"},
        ]

        # In UTC round 2 starts tomorrow, so the look-ahead selects it
        assert determine_default_round(matches, today=TODAY) == 2
        # In Sao Paulo it starts today, making it the newest active round
        assert determine_default_round(matches, today=TODAY, tz=sao_paulo) == 2

        later = [
            match(1, TODAY - timedelta(days=2)),
            {"round": 2, "match_date": kickoff + timedelta(days=1), "status": "scheduled"},
        ]
        # 01:30 UTC on the 14th is still the 13th (tomorrow) in Sao Paulo
        assert determine_default_round(later, today=TODAY, tz=sao_paulo) == 2
        # ...but two days ahead in UTC
        assert determine_default_round(later, today=TODAY) == 1

    def test_to_local_date(self):
        sao_paulo = pytz.timezone("America/Sao_Paulo")
        value = datetime(2024, 6, 13, 1, 30, tzinfo=timezone.utc)
        assert to_local_date(value) == date(2024, 6, 13)
        assert to_local_date(value, sao_paulo) == date(2024, 6, 12)
        assert to_local_date(TODAY) == TODAY
        assert to_local_date(object()) is None

    def test_date_only_strings_match_date_objects(self):
        sao_paulo = pytz.timezone("America/Sao_Paulo")
        assert to_local_date("2024-06-13", sao_paulo) == date(2024, 6, 13)
        assert to_aware_datetime("2024-06-13", sao_paulo) == to_aware_datetime(
            date(2024, 6, 13), sao_paulo
        )
        assert to_aware_datetime("2024-13-45") is None

        matches = [
            match(1, TODAY),
            {"round": 2, "match_date": "2024-06-14", "status": "scheduled"},
        ]
        # Round 2 starts the day after tomorrow in Sao Paulo, so no look-ahead
        assert determine_default_round(matches, today=TODAY, tz=sao_paulo) == 1

    def test_to_aware_datetime(self):
        assert to_aware_datetime("2024-06-12T10:00:00Z") == at(TODAY, 10)
        assert to_aware_datetime(datetime(2024, 6, 12, 10)) == at(TODAY, 10)
        assert to_aware_datetime(TODAY) == at(TODAY, 0)
        assert to_aware_datetime("garbage") is None
        assert to_aware_datetime(None) is None


class TestSummarizeRounds:
    def test_start_date_is_the_earliest_match(self):
        rounds = summarize_rounds(
            [
                match(1, TODAY, "finished", hour=21),
                match(1, TODAY - timedelta(days=1), "finished", hour=16),
                match(1, TODAY, "finished", hour=18),
            ]
        )
        info = rounds[1]
        assert info.start_date == at(TODAY - timedelta(days=1), 16)
        assert info.all_finished is True
        assert info.match_count == 3

    def test_any_unfinished_match_opens_the_round(self):
        rounds = summarize_rounds(
            [match(7, TODAY, "finished"), match(7, TODAY, "live")]
        )
        assert rounds[7].all_finished is False

    def test_round_without_matches_reports_all_finished(self):
        info = RoundInfo(start_date=at(TODAY))
        assert info.all_finished is True
        assert info.match_count == 0

    def test_select_round_without_rounds(self):
        assert select_round({}, today=TODAY) == 1
