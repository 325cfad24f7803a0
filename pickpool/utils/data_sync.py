import logging
from dataclasses import asdict, dataclass

import requests
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from pickpool.exceptions import FeedRecordError, FeedUnavailableError, PickPoolError
from pickpool.services.schedule_repository import ScheduleRepository
from pickpool.utils.cache_utils import invalidate_model_cache
from pickpool.utils.teams import normalize_team_name
from pickpool.utils.timezone_utils import convert_to_app_timezone, parse_feed_timestamp
from pickpool.utils.week_classifier import classify_week, season_for

logger = logging.getLogger(__name__)

SPREAD_MARKET = "spreads"


class OddsFeedClient:
    """
    Thin client for The Odds API v4.

    Every call uses a bounded timeout and is attempted exactly once; any
    transport or HTTP failure becomes a FeedUnavailableError for the caller
    (the scheduler or an admin) to retry.
    """

    def __init__(
        self,
        api_key=None,
        base_url=None,
        sport=None,
        regions=None,
        timeout=None,
        session=None,
    ):
        config = current_app.config
        self.api_key = api_key or config.get("ODDS_API_KEY")
        self.base_url = (base_url or config["ODDS_API_BASE_URL"]).rstrip("/")
        self.sport = sport or config["ODDS_API_SPORT"]
        self.regions = regions or config["ODDS_API_REGIONS"]
        self.timeout = timeout or config["ODDS_API_TIMEOUT"]
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "PickPool/1.0"})
        self.last_usage = {}

    def _get(self, endpoint, params=None):
        if not self.api_key:
            raise FeedUnavailableError("ODDS_API_KEY is not configured")

        url = f"{self.base_url}/sports/{self.sport}/{endpoint}"
        query = {"apiKey": self.api_key}
        if params:
            query.update(params)

        try:
            response = self.session.get(url, params=query, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(f"Request timeout for {url}")
            raise FeedUnavailableError(f"Timed out after {self.timeout}s: {url}") from e
        except requests.exceptions.RequestException as e:
            logger.warning(f"Request to {url} failed: {e}")
            raise FeedUnavailableError(f"Request to {url} failed: {e}") from e

        self.last_usage = {
            key: value
            for key, value in (
                ("requests_remaining", response.headers.get("x-requests-remaining")),
                ("requests_used", response.headers.get("x-requests-used")),
            )
            if value is not None
        }

        if response.status_code == 401:
            raise FeedUnavailableError("Odds feed rejected the API key (401)")
        if response.status_code == 429:
            raise FeedUnavailableError("Odds feed rate limit exceeded (429)")
        if response.status_code >= 400:
            raise FeedUnavailableError(
                f"Odds feed error {response.status_code}: {response.text[:200]}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise FeedUnavailableError(
                f"Invalid JSON from odds feed: {response.text[:200]}"
            ) from e

        if not isinstance(payload, list):
            raise FeedUnavailableError(
                f"Expected a list of games from {endpoint}, got {type(payload).__name__}"
            )

        logger.debug(f"Fetched {len(payload)} records from {endpoint}")
        return payload

    def fetch_odds(self):
        """Upcoming games with spread markets"""
        return self._get(
            "odds",
            {"regions": self.regions, "markets": SPREAD_MARKET, "oddsFormat": "american"},
        )

    def fetch_scores(self, days_from=None):
        """Live and recently completed games with scores"""
        days_from = days_from or current_app.config.get("ODDS_SCORES_DAYS_FROM", 3)
        return self._get("scores", {"daysFrom": days_from})


@dataclass
class SyncResult:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    @property
    def processed(self):
        return self.inserted + self.updated

    def to_dict(self):
        return asdict(self)


def extract_spread(record):
    """
    Home-team spread from a feed record's bookmaker markets.

    Bookmakers and markets are scanned in feed order; the first spreads
    outcome named for the home team that carries a point wins.
    """
    home_name = record.get("home_team")
    for bookmaker in record.get("bookmakers") or []:
        for market in bookmaker.get("markets") or []:
            if market.get("key") != SPREAD_MARKET:
                continue
            for outcome in market.get("outcomes") or []:
                if outcome.get("name") == home_name and outcome.get("point") is not None:
                    try:
                        return float(outcome["point"])
                    except (TypeError, ValueError) as e:
                        raise FeedRecordError(
                            f"Unparseable spread {outcome['point']!r} in record {record.get('id')}"
                        ) from e
    return None


def extract_final_scores(record):
    """
    (home_score, away_score) for a completed feed record, else None.

    Scores entries are matched to teams by name; a completed record that
    lacks either score is malformed.
    """
    if not record.get("completed"):
        return None

    scores = {
        entry.get("name"): entry.get("score") for entry in record.get("scores") or []
    }
    home = scores.get(record.get("home_team"))
    away = scores.get(record.get("away_team"))
    if home is None or away is None:
        raise FeedRecordError(
            f"Completed record {record.get('id')} is missing scores for both teams"
        )

    try:
        return int(home), int(away)
    except (TypeError, ValueError) as e:
        raise FeedRecordError(
            f"Unparseable score {home!r}-{away!r} in record {record.get('id')}"
        ) from e


def merge_feed_records(odds_records, score_records):
    """
    Overlay score records onto odds records by feed id.

    Score-only records are kept: completed games drop off the odds endpoint.
    """
    merged = {}
    order = []
    for record in odds_records:
        key = record.get("id")
        merged[key] = dict(record)
        order.append(key)

    for record in score_records:
        key = record.get("id")
        if key in merged:
            merged[key]["completed"] = record.get("completed")
            merged[key]["scores"] = record.get("scores")
        else:
            merged[key] = dict(record)
            order.append(key)

    return [merged[key] for key in order]


class OddsSyncEngine:
    """
    Reconciles raw feed records into the canonical schedule.

    The week classifier is a strategy: any callable taking a date and
    returning a week number.
    """

    def __init__(self, repository=None, classifier=classify_week, client=None):
        self.repository = repository or ScheduleRepository()
        self.classifier = classifier
        self.client = client

    def normalize_record(self, raw):
        """Translate one raw feed record into an upsert_game record"""
        if not isinstance(raw, dict):
            raise FeedRecordError(f"Expected a game object, got {type(raw).__name__}")

        home_name = raw.get("home_team")
        away_name = raw.get("away_team")
        if not home_name or not away_name:
            raise FeedRecordError(f"Record {raw.get('id')} is missing team names")

        try:
            game_time = parse_feed_timestamp(raw.get("commence_time"))
        except (TypeError, ValueError) as e:
            raise FeedRecordError(
                f"Record {raw.get('id')} has bad commence_time "
                f"{raw.get('commence_time')!r}: {e}"
            ) from e

        local_date = convert_to_app_timezone(game_time).date()

        spread = extract_spread(raw)
        if spread is None:
            logger.debug(
                f"No spread market for {away_name} @ {home_name} ({raw.get('id')})"
            )

        record = {
            "season": season_for(local_date),
            "week": self.classifier(local_date),
            "home_team": normalize_team_name(home_name),
            "away_team": normalize_team_name(away_name),
            "game_time": game_time,
            "spread": spread,
            "external_id": raw.get("id"),
        }

        scores = extract_final_scores(raw)
        if scores is not None:
            record["home_score"], record["away_score"] = scores

        return record

    def sync_batch(self, raw_records):
        """
        Upsert every record, tolerating per-record failures.

        Each record runs in its own savepoint, so one bad record never
        aborts the batch. The batch is committed once at the end.
        """
        result = SyncResult()
        session = self.repository.session

        for index, raw in enumerate(raw_records):
            try:
                record = self.normalize_record(raw)
                with session.begin_nested():
                    game, inserted = self.repository.upsert_game(record)
            except FeedRecordError as e:
                result.skipped += 1
                logger.warning(f"Skipping feed record #{index}: {e}")
                continue
            except (PickPoolError, ValueError, SQLAlchemyError) as e:
                result.errors += 1
                logger.error(f"Failed to sync feed record #{index}: {e}")
                continue

            if inserted:
                result.inserted += 1
                logger.debug(f"Inserted {game}")
            else:
                result.updated += 1

        session.commit()

        if result.processed:
            invalidate_model_cache("Game")

        logger.info(
            f"Sync batch complete: {result.inserted} inserted, {result.updated} updated, "
            f"{result.skipped} skipped, {result.errors} errors"
        )
        return result

    def sync_from_feed(self):
        """Pull odds and scores from the feed and sync them as one batch"""
        client = self.client or OddsFeedClient()
        odds = client.fetch_odds()
        scores = client.fetch_scores()

        records = merge_feed_records(odds, scores)
        logger.info(
            f"Fetched {len(odds)} odds and {len(scores)} score records "
            f"({len(records)} games)"
        )
        return self.sync_batch(records)
