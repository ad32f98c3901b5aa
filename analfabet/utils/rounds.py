"""
Default round selection for AnalfaBet

Picks the round a user sees when they did not ask for one:

1. the newest round that has started and is not fully finished,
2. otherwise the soonest upcoming round that is not fully finished,
3. otherwise the last known round.

If the round after the selected one kicks off tomorrow, it is shown instead.
All "has started" / "tomorrow" checks compare calendar dates in a single
timezone (UTC unless the caller passes the application's timezone).
"""

import logging
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta, timezone

from analfabet.utils.match_status import MatchStatus

logger = logging.getLogger(__name__)

FALLBACK_ROUND = 1


class RoundInfo:
    """Summary of one round: earliest kick-off and whether every match is finished"""

    __slots__ = ("start_date", "all_finished", "match_count")

    def __init__(self, start_date, all_finished=True):
        # A round with no matches reports all_finished=True (vacuous truth)
        self.start_date = start_date
        self.all_finished = all_finished
        self.match_count = 0

    def __repr__(self):
        return (
            f"<RoundInfo start={self.start_date.isoformat()} "
            f"all_finished={self.all_finished} matches={self.match_count}>"
        )

    def add(self, match_date, status):
        if match_date < self.start_date:
            self.start_date = match_date
        if status != MatchStatus.FINISHED:
            self.all_finished = False
        self.match_count += 1

    def start_day(self, tz=timezone.utc):
        return self.start_date.astimezone(tz).date()


def _localize(naive, tz):
    # pytz zones need localize(); datetime.timezone accepts replace()
    if hasattr(tz, "localize"):
        return tz.localize(naive)
    return naive.replace(tzinfo=tz)


def to_aware_datetime(value, tz=timezone.utc):
    """
    Normalize a match date to an aware datetime.

    Accepts datetime (naive = UTC), date and date-only ISO strings
    (midnight in ``tz``) and ISO 8601 datetime strings. Returns None for
    anything else.
    """
    if isinstance(value, str):
        value = value.strip()
        if len(value) == 10:
            try:
                return _localize(
                    datetime.combine(date.fromisoformat(value), time.min), tz
                )
            except ValueError:
                return None
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    if isinstance(value, date):
        return _localize(datetime.combine(value, time.min), tz)

    return None


def to_local_date(value, tz=timezone.utc):
    """Calendar date of ``value`` in ``tz``"""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    aware = to_aware_datetime(value, tz)
    if aware is None:
        return None
    return aware.astimezone(tz).date()


def _field(match, name):
    if isinstance(match, Mapping):
        return match.get(name)
    return getattr(match, name, None)


def _round_number(value):
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def summarize_rounds(matches, tz=timezone.utc):
    """
    Group matches by round.

    Args:
        matches: iterable of objects or mappings with ``round``,
            ``match_date`` and ``status``
        tz: timezone used for date-only match dates

    Returns:
        dict mapping round number -> RoundInfo
    """
    rounds = {}

    for match in matches:
        round_number = _round_number(_field(match, "round"))
        match_date = to_aware_datetime(_field(match, "match_date"), tz)

        if round_number is None or match_date is None:
            logger.warning(
                "Skipping match with unusable round/date: round=%r date=%r",
                _field(match, "round"),
                _field(match, "match_date"),
            )
            continue

        if round_number not in rounds:
            rounds[round_number] = RoundInfo(start_date=match_date)
        rounds[round_number].add(match_date, _field(match, "status"))

    return rounds


def select_round(rounds, today=None, tz=timezone.utc):
    """
    Pick the default round from a round summary.

    Args:
        rounds: dict mapping round number -> RoundInfo
        today: date or datetime, defaults to now
        tz: timezone in which calendar dates are compared

    Returns:
        int round number (1 when there are no rounds)
    """
    if not rounds:
        return FALLBACK_ROUND

    now = datetime.now(timezone.utc)
    local_today = to_local_date(today or now, tz)
    if local_today is None:
        logger.warning("Unusable 'today' value %r, using the current date", today)
        local_today = to_local_date(now, tz)
    today = local_today
    round_numbers = sorted(rounds)

    active_rounds = []
    future_incomplete_rounds = []

    for round_number in round_numbers:
        info = rounds[round_number]
        if info.all_finished:
            continue
        if info.start_day(tz) <= today:
            active_rounds.append(round_number)
        else:
            future_incomplete_rounds.append(round_number)

    if active_rounds:
        selected = max(active_rounds)
    elif future_incomplete_rounds:
        selected = min(future_incomplete_rounds)
    else:
        selected = max(round_numbers)

    next_round = selected + 1
    if next_round in rounds:
        tomorrow = today + timedelta(days=1)
        if rounds[next_round].start_day(tz) == tomorrow:
            selected = next_round

    return selected


def determine_default_round(matches, today=None, tz=timezone.utc):
    """Default round for a snapshot of matches; never raises, 1 when empty"""
    return select_round(summarize_rounds(matches, tz), today, tz)
