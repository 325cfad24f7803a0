from unittest import mock

import pytest
import requests

from pickpool.exceptions import FeedRecordError, FeedUnavailableError
from pickpool.models import GameStatus
from pickpool.utils.data_sync import (
    OddsFeedClient,
    OddsSyncEngine,
    extract_final_scores,
    extract_spread,
    merge_feed_records,
)
from pickpool.utils.teams import unmapped_team_counts
from tests.factories import feed_record


def _scores_record(event_id="evt-1", home=24, away=17, completed=True, **extra):
    record = {
        "id": event_id,
        "commence_time": "2025-09-05T00:20:00Z",
        "completed": completed,
        "home_team": "Kansas City Chiefs",
        "away_team": "Baltimore Ravens",
        "scores": [
            {"name": "Kansas City Chiefs", "score": str(home)},
            {"name": "Baltimore Ravens", "score": str(away)},
        ],
    }
    record.update(extra)
    return record


def test_extract_spread_uses_home_outcome():
    assert extract_spread(feed_record(spread=-2.5)) == -2.5


def test_extract_spread_first_bookmaker_wins():
    record = feed_record(spread=-2.5)
    record["bookmakers"].append(
        {
            "key": "fanduel",
            "markets": [
                {
                    "key": "spreads",
                    "outcomes": [{"name": "Kansas City Chiefs", "point": -3.5}],
                }
            ],
        }
    )
    assert extract_spread(record) == -2.5


def test_extract_spread_skips_other_markets_and_pointless_outcomes():
    record = feed_record(spread=None)
    record["bookmakers"] = [
        {
            "key": "book",
            "markets": [
                {"key": "h2h", "outcomes": [{"name": "Kansas City Chiefs", "price": -150}]},
                {
                    "key": "spreads",
                    "outcomes": [
                        {"name": "Kansas City Chiefs", "price": -110},
                        {"name": "Kansas City Chiefs", "point": 1.5},
                    ],
                },
            ],
        }
    ]
    assert extract_spread(record) == 1.5


def test_extract_spread_without_market_is_none():
    assert extract_spread(feed_record(spread=None)) is None


def test_extract_spread_rejects_non_numeric_point():
    record = feed_record()
    record["bookmakers"][0]["markets"][0]["outcomes"][1]["point"] = "pk"

    with pytest.raises(FeedRecordError):
        extract_spread(record)


def test_extract_final_scores():
    assert extract_final_scores(_scores_record()) == (24, 17)
    assert extract_final_scores(_scores_record(completed=False)) is None
    assert extract_final_scores(feed_record()) is None


def test_extract_final_scores_requires_both_teams():
    record = _scores_record()
    record["scores"] = record["scores"][:1]
    with pytest.raises(FeedRecordError):
        extract_final_scores(record)


def test_merge_overlays_scores_and_keeps_score_only_records():
    odds = [feed_record("a"), feed_record("b", home="Buffalo Bills", away="Miami Dolphins")]
    scores = [_scores_record("a"), _scores_record("z", home=3, away=0)]

    merged = merge_feed_records(odds, scores)

    assert [r["id"] for r in merged] == ["a", "b", "z"]
    assert merged[0]["completed"] is True
    assert merged[0]["bookmakers"]
    assert "completed" not in merged[1]


def test_sync_batch_inserts_then_updates(app, repo):
    engine = OddsSyncEngine()
    records = [
        feed_record("a"),
        feed_record("b", home="Buffalo Bills", away="Miami Dolphins", spread=-6.0),
    ]

    first = engine.sync_batch(records)
    second = engine.sync_batch(records)

    assert (first.inserted, first.updated) == (2, 0)
    assert (second.inserted, second.updated) == (0, 2)

    games = repo.get_games(2025, week=1)
    assert {(g.home_team, g.away_team, g.spread) for g in games} == {
        ("KC", "BAL", -2.5),
        ("BUF", "MIA", -6.0),
    }
    assert {g.external_id for g in games} == {"a", "b"}


def test_kc_bal_scenario_through_feed(app, repo):
    engine = OddsSyncEngine()
    engine.sync_batch([feed_record(spread=-2.5)])

    record = feed_record(spread=-3.0)
    record.update(completed=True, scores=_scores_record()["scores"])
    result = engine.sync_batch([record])

    assert result.updated == 1
    (game,) = repo.get_games(2025)
    assert game.spread == -3.0
    assert game.status == GameStatus.FINAL
    assert (game.home_score, game.away_score) == (24, 17)


def test_malformed_records_are_skipped_and_batch_continues(app, repo):
    records = [
        feed_record("bad-team", home=None),
        "not a record",
        feed_record("bad-date", commence="next sunday"),
        feed_record("good"),
    ]

    result = OddsSyncEngine().sync_batch(records)

    assert result.inserted == 1
    assert result.skipped == 3
    assert result.errors == 0
    assert [g.external_id for g in repo.get_games(2025)] == ["good"]


def test_record_with_garbled_spread_is_skipped(app, repo):
    garbled = feed_record("garbled")
    garbled["bookmakers"][0]["markets"][0]["outcomes"][1]["point"] = "n/a"

    result = OddsSyncEngine().sync_batch([garbled, feed_record("good", home="Buffalo Bills")])

    assert (result.inserted, result.skipped, result.errors) == (1, 1, 0)


def test_record_without_spread_is_kept(app, repo):
    result = OddsSyncEngine().sync_batch([feed_record(spread=None)])

    assert result.inserted == 1
    assert repo.get_games(2025)[0].spread is None


def test_unmapped_team_passes_through(app, repo):
    OddsSyncEngine().sync_batch([feed_record(home="Oakland Raiders")])

    assert repo.get_games(2025)[0].home_team == "Oakland Raiders"
    assert unmapped_team_counts() == {"Oakland Raiders": 1}


def test_classifier_is_injectable(app, repo):
    OddsSyncEngine(classifier=lambda day: 42).sync_batch([feed_record()])

    assert repo.get_games(2025)[0].week == 42


def test_week_uses_app_timezone(app, repo):
    # Sunday night kickoff: Sep 7 in New York, Sep 8 in UTC
    record = feed_record(commence="2025-09-08T00:20:00Z")

    app.config["TIMEZONE"] = "UTC"
    OddsSyncEngine().sync_batch([record])
    app.config["TIMEZONE"] = "America/New_York"
    OddsSyncEngine().sync_batch([record])

    assert sorted(g.week for g in repo.get_games(2025)) == [1, 2]


def test_sync_from_feed_merges_odds_and_scores(app, repo):
    client = mock.Mock()
    client.fetch_odds.return_value = [
        feed_record("upcoming", home="Buffalo Bills", away="Miami Dolphins")
    ]
    client.fetch_scores.return_value = [_scores_record("done")]

    result = OddsSyncEngine(client=client).sync_from_feed()

    assert result.inserted == 2
    final = repo.get_games(2025, status=GameStatus.FINAL)
    assert [(g.home_team, g.home_score, g.away_score) for g in final] == [("KC", 24, 17)]


def test_sync_from_feed_surfaces_unavailability(app):
    client = mock.Mock()
    client.fetch_odds.side_effect = FeedUnavailableError("down")

    with pytest.raises(FeedUnavailableError):
        OddsSyncEngine(client=client).sync_from_feed()


def _response(status=200, payload=None):
    response = mock.Mock()
    response.status_code = status
    response.headers = {"x-requests-remaining": "480"}
    response.text = "error"
    response.json.return_value = payload if payload is not None else []
    return response


def test_client_requests_odds_with_timeout(app):
    session = mock.Mock()
    session.headers = {}
    session.get.return_value = _response(payload=[feed_record()])

    records = OddsFeedClient(session=session).fetch_odds()

    assert len(records) == 1
    args, kwargs = session.get.call_args
    assert args[0] == (
        "https://api.the-odds-api.com/v4/sports/americanfootball_nfl/odds"
    )
    assert kwargs["params"]["apiKey"] == "test-key"
    assert kwargs["params"]["markets"] == "spreads"
    assert kwargs["timeout"] == app.config["ODDS_API_TIMEOUT"]


@pytest.mark.parametrize("status", [401, 429, 500, 503])
def test_client_http_errors_are_not_retried(app, status):
    session = mock.Mock()
    session.headers = {}
    session.get.return_value = _response(status=status)

    with pytest.raises(FeedUnavailableError):
        OddsFeedClient(session=session).fetch_scores()

    assert session.get.call_count == 1


def test_client_timeout_is_unavailable(app):
    session = mock.Mock()
    session.headers = {}
    session.get.side_effect = requests.exceptions.Timeout("slow")

    with pytest.raises(FeedUnavailableError):
        OddsFeedClient(session=session).fetch_odds()

    assert session.get.call_count == 1


def test_client_without_key_is_unavailable(app):
    app.config["ODDS_API_KEY"] = None
    session = mock.Mock()
    session.headers = {}

    with pytest.raises(FeedUnavailableError):
        OddsFeedClient(session=session).fetch_odds()

    session.get.assert_not_called()
