"""Tests for the games catalog service (gamehub/catalog.py)."""

import datetime

import pytest

from gamehub.catalog import GameCatalog, parse_price, parse_release_date
from gamehub.errors import GameNotFoundError, InvalidCategoryError, MissingFieldError


@pytest.fixture
def catalog(games):
    return GameCatalog(games)


def _game(**overrides):
    fields = {
        "name": "Dota",
        "author": "Valve",
        "releaseDate": "2013-07-09",
        "category": "moba",
    }
    fields.update(overrides)
    return fields


class TestInsert:
    def test_first_game_id_uses_category_code(self, catalog):
        game = catalog.insert(_game())

        assert game["id"] == "GAMEMB0001"
        assert game["releaseDate"] == datetime.datetime(2013, 7, 9)

    def test_sequence_is_shared_across_categories(self, catalog):
        catalog.insert(_game(category="roleplay"))

        game = catalog.insert(_game(category="sandbox"))

        assert game["id"] == "GAMESB0002"

    def test_optional_fields(self, catalog):
        game = catalog.insert(_game(description="5v5", price="19.99"))

        assert game["description"] == "5v5"
        assert game["price"] == 19

    def test_unparseable_price_is_zero(self, catalog):
        assert catalog.insert(_game(price="free"))["price"] == 0

    def test_stored_game_is_listed_without_mongo_id(self, catalog):
        catalog.insert(_game())

        listed = catalog.list_all()

        assert len(listed) == 1
        assert "_id" not in listed[0]

    @pytest.mark.parametrize("field", ["name", "author", "releaseDate"])
    def test_missing_required_field(self, catalog, field):
        with pytest.raises(MissingFieldError) as err:
            catalog.insert(_game(**{field: ""}))
        assert err.value.field == field

    def test_unparseable_release_date(self, catalog):
        with pytest.raises(MissingFieldError):
            catalog.insert(_game(releaseDate="next summer"))

    def test_unknown_category(self, catalog):
        with pytest.raises(InvalidCategoryError) as err:
            catalog.insert(_game(category="racing"))
        assert "roleplay,moba,sandbox" in err.value.message


class TestUpdate:
    def test_updates_supplied_fields_only(self, catalog, game_collection):
        catalog.insert(_game())

        changes = catalog.update("GAMEMB0001", {"name": "Dota 2", "price": "5"})

        assert changes == {"name": "Dota 2", "price": 5}
        stored = game_collection.documents[0]
        assert stored["name"] == "Dota 2"
        assert stored["author"] == "Valve"

    def test_unchanged_game_returns_none(self, catalog):
        catalog.insert(_game())

        assert catalog.update("GAMEMB0001", {"name": "Dota"}) is None

    def test_empty_update_of_existing_game_returns_none(self, catalog):
        catalog.insert(_game())

        assert catalog.update("GAMEMB0001", {}) is None

    def test_unknown_game(self, catalog):
        with pytest.raises(GameNotFoundError):
            catalog.update("GAMEMB9999", {"name": "x"})
        with pytest.raises(GameNotFoundError):
            catalog.update("GAMEMB9999", {})

    def test_blank_name_is_rejected(self, catalog):
        catalog.insert(_game())

        with pytest.raises(MissingFieldError):
            catalog.update("GAMEMB0001", {"name": ""})

    def test_valid_release_date_is_accepted(self, catalog):
        catalog.insert(_game())

        changes = catalog.update("GAMEMB0001", {"releaseDate": "2014-01-01T00:00:00Z"})

        assert changes["releaseDate"] == datetime.datetime(2014, 1, 1, tzinfo=datetime.timezone.utc)

    def test_invalid_release_date_is_rejected(self, catalog):
        catalog.insert(_game())

        with pytest.raises(MissingFieldError):
            catalog.update("GAMEMB0001", {"releaseDate": "soon"})


class TestDelete:
    def test_delete_existing(self, catalog):
        catalog.insert(_game())

        catalog.delete("GAMEMB0001")

        assert catalog.list_all() == []

    def test_delete_unknown(self, catalog):
        with pytest.raises(GameNotFoundError):
            catalog.delete("GAMEMB0001")


def test_parsers():
    assert parse_release_date("2020-02-29") == datetime.datetime(2020, 2, 29)
    assert parse_release_date(None) is None
    assert parse_price(None) == 0
    assert parse_price(7) == 7
