import logging
import time
from functools import wraps

import requests
from flask import current_app

from analfabet import db
from analfabet.models import Match
from analfabet.utils.cache_utils import invalidate_model_cache
from analfabet.utils.match_status import MatchStatus
from analfabet.utils.timezone_utils import parse_api_datetime

logger = logging.getLogger(__name__)

# football-data.org status -> local status
STATUS_MAP = {
    "SCHEDULED": MatchStatus.SCHEDULED,
    "TIMED": MatchStatus.SCHEDULED,
    "IN_PLAY": MatchStatus.LIVE,
    "PAUSED": MatchStatus.LIVE,
    "LIVE": MatchStatus.LIVE,
    "FINISHED": MatchStatus.FINISHED,
    "AWARDED": MatchStatus.FINISHED,
    "POSTPONED": MatchStatus.POSTPONED,
    "SUSPENDED": MatchStatus.POSTPONED,
    "CANCELLED": MatchStatus.CANCELLED,
}

RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)


def _status_code(error):
    response = getattr(error, "response", None)
    return response.status_code if response is not None else None


def rate_limit_decorator(max_retries=3, base_delay=1.0, backoff_factor=2.0):
    """
    Decorator to handle API rate limiting with exponential backoff

    Retries timeouts, connection errors, 429 and 5xx responses. Any other
    HTTP error (404 included) is raised immediately.
    """

    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            for attempt in range(max_retries):
                try:
                    return func(self, *args, **kwargs)

                except requests.exceptions.HTTPError as e:
                    status_code = _status_code(e)
                    if status_code not in RETRYABLE_STATUS_CODES:
                        raise
                    if attempt == max_retries - 1:
                        raise

                    delay = base_delay * (backoff_factor**attempt)
                    if status_code == 429:
                        try:
                            delay = float(e.response.headers.get("Retry-After", delay))
                        except (TypeError, ValueError):
                            pass
                        logger.warning(
                            f"Rate limited. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                        )
                    else:
                        logger.warning(
                            f"Server error {status_code}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                        )
                    time.sleep(delay)

                except (
                    requests.exceptions.ConnectionError,
                    requests.exceptions.Timeout,
                ) as e:
                    if attempt == max_retries - 1:
                        raise
                    delay = base_delay * (backoff_factor**attempt)
                    logger.warning(
                        f"Request failed: {e}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                    )
                    time.sleep(delay)

            raise Exception(f"Max retries ({max_retries}) exceeded")

        return wrapper

    return decorator


class DataSync:
    """
    Synchronizes matches and results from the football-data.org v4 API
    with rate limiting and failsafe mechanisms
    """

    def __init__(self, api_base_url=None, api_key=None, competition=None):
        config = current_app.config
        self.api_base_url = (
            api_base_url
            or config.get("FOOTBALL_DATA_API_URL")
            or "https://api.football-data.org/v4"
        ).rstrip("/")
        self.api_key = api_key or config.get("FOOTBALL_DATA_API_KEY")
        self.competition = competition or config.get("COMPETITION_CODE", "BSA")
        self.default_season = config.get("COMPETITION_SEASON")

        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "AnalfaBet/1.0"})
        if self.api_key:
            self.session.headers.update({"X-Auth-Token": self.api_key})

        # Rate limiting configuration (free tier: 10 requests per minute)
        self.request_count = 0
        self.last_request_time = 0
        self.max_requests_per_minute = int(config.get("API_REQUESTS_PER_MINUTE", 10))
        self.min_request_interval = 1.0
        self.request_timestamps = []

    def _enforce_rate_limit(self):
        """Enforce rate limiting before making requests"""
        current_time = time.time()

        # Remove timestamps older than 1 minute
        self.request_timestamps = [
            ts for ts in self.request_timestamps if current_time - ts < 60
        ]

        # Check if we're at the request limit
        if len(self.request_timestamps) >= self.max_requests_per_minute:
            sleep_time = 60 - (current_time - self.request_timestamps[0])
            if sleep_time > 0:
                logger.info(f"Rate limit reached. Sleeping for {sleep_time:.1f}s")
                time.sleep(sleep_time)
                self.request_timestamps = []

        # Enforce minimum interval between requests
        time_since_last = time.time() - self.last_request_time
        if time_since_last < self.min_request_interval:
            time.sleep(self.min_request_interval - time_since_last)

        # Update tracking
        self.last_request_time = time.time()
        self.request_timestamps.append(self.last_request_time)
        self.request_count += 1

    @rate_limit_decorator(max_retries=3, base_delay=2.0)
    def _make_api_request(self, path, params=None):
        """GET an API path; returns the decoded JSON body"""
        self._enforce_rate_limit()

        url = f"{self.api_base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=30)
            response.raise_for_status()
            return response.json()

        except requests.exceptions.Timeout:
            logger.warning(f"Request timeout for {url}")
            raise
        except requests.exceptions.ConnectionError:
            logger.warning(f"Connection error for {url}")
            raise
        except requests.exceptions.HTTPError as e:
            status_code = _status_code(e)
            if status_code == 429:
                logger.warning(f"Rate limited: {url}")
            elif status_code is not None and status_code >= 500:
                logger.warning(f"Server error {status_code}: {url}")
            else:
                logger.error(f"HTTP error {status_code}: {url}")
            raise

    def get_rate_limit_status(self):
        """Get current rate limit status"""
        current_time = time.time()
        self.request_timestamps = [
            ts for ts in self.request_timestamps if current_time - ts < 60
        ]

        return {
            "total_requests": self.request_count,
            "requests_last_minute": len(self.request_timestamps),
            "max_requests_per_minute": self.max_requests_per_minute,
            "time_since_last_request": (
                current_time - self.last_request_time if self.last_request_time else 0
            ),
            "min_request_interval": self.min_request_interval,
        }

    @staticmethod
    def map_status(api_status):
        """Map a football-data.org status to a local MatchStatus value"""
        status = STATUS_MAP.get((api_status or "").upper())
        if status is None:
            logger.warning(f"Unknown API match status {api_status!r}, treating as scheduled")
            return MatchStatus.SCHEDULED
        return status

    def get_current_matchday(self):
        """Current matchday of the competition, or None"""
        data = self._make_api_request(f"/competitions/{self.competition}")
        matchday = (data.get("currentSeason") or {}).get("currentMatchday")
        try:
            return int(matchday) if matchday is not None else None
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _parse_result(data):
        """(home_score, away_score, status) from a match payload"""
        status = DataSync.map_status(data.get("status"))
        full_time = (data.get("score") or {}).get("fullTime") or {}
        home_score = full_time.get("home")
        away_score = full_time.get("away")

        if status == MatchStatus.FINISHED and (home_score is None or away_score is None):
            # Keep polling until the final score is published
            logger.warning(
                f"Match {data.get('id')} reported finished without a full-time score"
            )
            status = MatchStatus.LIVE

        return home_score, away_score, status

    def _apply_match_data(self, data):
        """
        Insert or update one match from an API payload

        Returns:
            tuple: (match or None, created, result_changed)
        """
        api_id = data.get("id")
        matchday = data.get("matchday")
        match_date = parse_api_datetime(data.get("utcDate"))
        home_team = (data.get("homeTeam") or {}).get("name")
        away_team = (data.get("awayTeam") or {}).get("name")

        if not api_id or not matchday or not match_date or not home_team or not away_team:
            logger.warning(f"Skipping incomplete match payload: id={api_id!r}")
            return None, False, False

        season_start = (data.get("season") or {}).get("startDate") or ""
        home_score, away_score, status = self._parse_result(data)

        match = Match.get_by_api_id(api_id)
        created = match is None
        if created:
            match = Match(api_id=api_id)
            db.session.add(match)

        match.competition = self.competition
        match.season = int(season_start[:4]) if season_start[:4].isdigit() else match.season
        match.round = int(matchday)
        match.match_date = match_date
        match.home_team = home_team
        match.away_team = away_team
        match.home_crest = (data.get("homeTeam") or {}).get("crest")
        match.away_crest = (data.get("awayTeam") or {}).get("crest")

        if created:
            match.home_score = home_score
            match.away_score = away_score
            match.status = status
            return match, True, False

        return match, False, match.update_result(home_score, away_score, status)

    def sync_matches(self, season=None, matchday=None):
        """
        Upsert every match of the competition (or of one matchday)

        Returns:
            tuple: (success, message)
        """
        if not self.api_key:
            return False, "FOOTBALL_DATA_API_KEY is not configured"

        try:
            season = season or self.default_season
            params = {}
            if season:
                params["season"] = season
            if matchday:
                params["matchday"] = matchday

            logger.info(
                f"Starting match sync for {self.competition} "
                f"(season={season or 'current'}, matchday={matchday or 'all'})"
            )
            data = self._make_api_request(
                f"/competitions/{self.competition}/matches", params=params or None
            )

            created = updated = skipped = 0
            for match_data in data.get("matches", []):
                match, was_created, changed = self._apply_match_data(match_data)
                if match is None:
                    skipped += 1
                elif was_created:
                    created += 1
                elif changed:
                    updated += 1

            db.session.commit()

            if created or updated:
                invalidate_model_cache("matches")

            message = f"Synced matches: {created} new, {updated} results changed, {skipped} skipped"
            logger.info(message)
            return True, message

        except Exception as e:
            db.session.rollback()
            logger.error(f"Error syncing matches: {str(e)}", exc_info=True)
            return False, str(e)

    def update_results(self, limit=5):
        """
        Refresh results for kicked-off matches that are not settled yet,
        oldest first, at most ``limit`` API calls per run

        Returns:
            tuple: (success, message)
        """
        if not self.api_key:
            return False, "FOOTBALL_DATA_API_KEY is not configured"

        try:
            pending = Match.get_pending_results(limit=limit)
            checked = updated = 0

            for match in pending:
                try:
                    data = self._make_api_request(f"/matches/{match.api_id}")
                except requests.exceptions.HTTPError as e:
                    status_code = _status_code(e)
                    if status_code == 404:
                        logger.warning(
                            f"Match {match.api_id} not found in the API, marking cancelled"
                        )
                        if match.update_result(
                            match.home_score, match.away_score, MatchStatus.CANCELLED
                        ):
                            updated += 1
                        continue
                    if status_code == 429:
                        logger.warning("API rate limit hit, stopping this results run")
                        break
                    continue
                except requests.exceptions.RequestException as e:
                    logger.warning(f"Could not fetch match {match.api_id}: {e}")
                    continue

                checked += 1
                match_data = data.get("match") or data
                if not match_data.get("status"):
                    logger.warning(f"Unexpected API data for match {match.api_id}")
                    continue

                home_score, away_score, status = self._parse_result(match_data)
                if match.update_result(home_score, away_score, status):
                    updated += 1
                    logger.info(
                        f"Match {match.api_id} {match.home_team} x {match.away_team}: "
                        f"{home_score}-{away_score} ({status})"
                    )

            db.session.commit()

            if updated:
                invalidate_model_cache("matches")

            message = f"Checked {checked} of {len(pending)} pending matches, {updated} updated"
            logger.info(message)
            return True, message

        except Exception as e:
            db.session.rollback()
            logger.error(f"Error updating results: {str(e)}", exc_info=True)
            return False, str(e)
