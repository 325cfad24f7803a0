import pytest

from pickpool import create_app
from pickpool import db as _db
from pickpool.models import Pick
from pickpool.services.schedule_repository import ScheduleRepository
from pickpool.utils.teams import reset_unmapped_team_counts


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture(autouse=True)
def clean_unmapped_counts():
    reset_unmapped_team_counts()
    yield
    reset_unmapped_team_counts()


@pytest.fixture
def repo(app):
    return ScheduleRepository()


@pytest.fixture
def make_game(repo):
    def _make(home="KC", away="BAL", season=2025, week=1, **fields):
        record = {
            "season": season,
            "week": week,
            "home_team": home,
            "away_team": away,
            **fields,
        }
        game, _ = repo.upsert_game(record, commit=True)
        return game

    return _make


@pytest.fixture
def make_pick(db):
    def _make(user_id, game, team):
        pick = Pick(user_id=user_id, game_id=game.id, selected_team=team)
        db.session.add(pick)
        db.session.commit()
        return pick

    return _make
