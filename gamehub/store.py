"""
MongoDB adapters for credential and game records.

The adapters only need the pymongo Collection surface (find_one, find,
insert_one, update_one, delete_one, create_index), so tests pass in-memory
collections with the same methods.

Documents keep Mongo's own `_id`, but it never leaves this module: every
read projects it away.
"""

import logging

from pymongo import DESCENDING, MongoClient
from pymongo.errors import DuplicateKeyError

from gamehub.config import Settings
from gamehub.errors import IdAllocationError
from gamehub.ids import next_sequential_id

logger = logging.getLogger(__name__)

_NO_MONGO_ID = {"_id": False}


def connect(settings: Settings) -> MongoClient:
    """Create a client and check the server answers before serving requests."""
    client = MongoClient(
        settings.mongodb_uri,
        appname=settings.mongodb_app_name,
        username=settings.mongodb_username,
        password=settings.mongodb_password,
    )
    client.admin.command("ping")
    logger.info("Connected to the database", extra={"event_data": {"database": settings.mongodb_database}})
    return client


def duplicate_key_fields(error: DuplicateKeyError) -> set[str]:
    """Names of the indexed fields that caused `error`."""
    details = error.details or {}
    key_value = details.get("keyValue") or {}
    if key_value:
        return set(key_value)
    # Older servers only report the index name, e.g. "username_1".
    message = details.get("errmsg", str(error))
    return {field for field in ("username", "id") if f"{field}_1" in message}


class _SequencedCollection:
    def __init__(self, collection):
        self.collection = collection

    def last_id(self) -> str | None:
        """Id of the most recently inserted record."""
        last = self.collection.find_one(
            {},
            projection={"_id": False, "id": True},
            sort=[("_id", DESCENDING)],
        )
        if last is None:
            return None
        return last.get("id")

    def insert_sequenced(self, prefix: str, record: dict, attempts: int = 1) -> dict:
        """
        Give `record` the id following the last inserted one and insert it.

        Allocation reads the last id and then inserts, so two concurrent
        callers can pick the same id. With the unique index on `id` in place
        the loser gets a DuplicateKeyError and allocates again, up to
        `attempts` times. Other duplicate keys propagate to the caller.

        Returns the stored record (with its id, without `_id`).
        """
        for attempt in range(1, attempts + 1):
            stored = {**record, "id": next_sequential_id(prefix, self.last_id())}
            try:
                self.collection.insert_one(dict(stored))
            except DuplicateKeyError as e:
                if "id" not in duplicate_key_fields(e):
                    raise
                logger.warning(
                    "Sequential id collided with a concurrent insert",
                    extra={"event_data": {"id": stored["id"], "attempt": attempt}},
                )
                continue
            return stored
        raise IdAllocationError(f"Could not allocate a {prefix} id after {attempts} attempts")

    def ensure_indexes(self) -> None:
        self.collection.create_index("id", unique=True)


class CredentialStore(_SequencedCollection):
    """Credential records: {id, username, password}."""

    def find_by_username(self, username: str) -> dict | None:
        return self.collection.find_one({"username": username}, projection=_NO_MONGO_ID)

    def ensure_indexes(self) -> None:
        super().ensure_indexes()
        self.collection.create_index("username", unique=True)


class GameStore(_SequencedCollection):
    """Game records keyed by their sequential `id`."""

    def all(self) -> list[dict]:
        return list(self.collection.find({}, projection=_NO_MONGO_ID))

    def exists(self, game_id: str) -> bool:
        return self.collection.find_one({"id": game_id}, projection={"_id": True}) is not None

    def update(self, game_id: str, changes: dict) -> tuple[int, int]:
        """Returns (matched, modified)."""
        result = self.collection.update_one({"id": game_id}, {"$set": changes})
        return result.matched_count, result.modified_count

    def delete(self, game_id: str) -> int:
        return self.collection.delete_one({"id": game_id}).deleted_count
