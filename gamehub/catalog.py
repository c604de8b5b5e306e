"""
Games catalog: create, list, update and delete game records.

Game ids are GAME<category code><NNNN>. The number continues from the last
inserted game whatever its category, so GAMERP0001 may be followed by
GAMESB0002.
"""

import datetime
import logging

from gamehub.errors import GameNotFoundError, InvalidCategoryError, MissingFieldError
from gamehub.store import GameStore

logger = logging.getLogger(__name__)

CATEGORIES: dict[str, str] = {
    "roleplay": "RP",
    "moba": "MB",
    "sandbox": "SB",
}


def parse_release_date(value) -> datetime.datetime | None:
    """Parse an ISO-8601 date or datetime; None when it isn't one."""
    if isinstance(value, datetime.datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_price(value) -> int:
    """Whole-number price; anything unparseable is 0."""
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def game_id_prefix(category: str) -> str:
    return "GAME" + CATEGORIES[category]


class GameCatalog:
    def __init__(self, games: GameStore, id_attempts: int = 1):
        self.games = games
        self.id_attempts = id_attempts

    def list_all(self) -> list[dict]:
        return self.games.all()

    def insert(self, fields: dict) -> dict:
        """
        Validate and store a new game.

        Required: name, author, releaseDate, category.
        Optional: description, price.
        """
        name = fields.get("name")
        author = fields.get("author")
        if not name:
            raise MissingFieldError("name")
        if not author:
            raise MissingFieldError("author")
        release_date = parse_release_date(fields.get("releaseDate"))
        if release_date is None:
            raise MissingFieldError("releaseDate")
        category = fields.get("category")
        if category not in CATEGORIES:
            raise InvalidCategoryError(CATEGORIES)

        game = {"name": name, "releaseDate": release_date, "author": author}
        if fields.get("description"):
            game["description"] = fields["description"]
        if fields.get("price"):
            game["price"] = parse_price(fields["price"])

        stored = self.games.insert_sequenced(game_id_prefix(category), game, attempts=self.id_attempts)
        logger.info("Game created", extra={"event_data": {"game_id": stored["id"]}})
        return stored

    def update(self, game_id: str, fields: dict) -> dict | None:
        """
        Apply the supplied fields to a game.

        Returns the applied changes, or None when the game matched but
        nothing changed.

        Raises:
            MissingFieldError: A supplied name/author is blank or releaseDate is unparseable
            GameNotFoundError: No game has this id
        """
        changes = {}
        for field in ("name", "author"):
            if field in fields and fields[field] is not None:
                if fields[field] == "":
                    raise MissingFieldError(field)
                changes[field] = fields[field]
        if fields.get("releaseDate") is not None:
            release_date = parse_release_date(fields["releaseDate"])
            if release_date is None:
                raise MissingFieldError("releaseDate")
            changes["releaseDate"] = release_date
        if fields.get("description"):
            changes["description"] = fields["description"]
        if fields.get("price"):
            changes["price"] = parse_price(fields["price"])

        if not changes:
            # Mongo rejects an empty $set; an existing game is simply unchanged.
            if not self.games.exists(game_id):
                raise GameNotFoundError()
            return None

        matched, modified = self.games.update(game_id, changes)
        if matched <= 0:
            raise GameNotFoundError()
        if modified <= 0:
            return None
        return changes

    def delete(self, game_id: str) -> None:
        if self.games.delete(game_id) <= 0:
            raise GameNotFoundError()
