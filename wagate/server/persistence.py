"""
Credential persistence backends.
"""

from __future__ import annotations

import base64
import json
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from wagate.common.exceptions import StoreError
from wagate.common.models import CredentialRecord

if TYPE_CHECKING:
    from pymongo.collection import Collection

    from wagate.common.config import Config
    from wagate.common.interfaces import CredentialStore

logger = logging.getLogger(__name__)


class FileCredentialStore:
    """Keeps one JSON file per credential key in a directory."""

    SUFFIX = ".json"

    def __init__(self, directory: Path):
        self.directory = directory

    @staticmethod
    def _file_name(key: str) -> str:
        # URL-safe base64 keeps distinct keys on distinct file names.
        return base64.urlsafe_b64encode(key.encode("utf-8")).decode("ascii").rstrip("=")

    def _path(self, key: str) -> Path:
        return self.directory / f"{self._file_name(key)}{self.SUFFIX}"

    @staticmethod
    def _serialize_record(record: CredentialRecord) -> dict[str, Any]:
        data = record.model_dump()
        data["blob"] = base64.b64encode(record.blob).decode("utf-8")
        return data

    @staticmethod
    def _deserialize_record(data: dict[str, Any]) -> CredentialRecord:
        data["blob"] = base64.b64decode(data["blob"])
        return CredentialRecord(**data)

    def _read(self, path: Path) -> CredentialRecord:
        try:
            with path.open() as f:
                return self._deserialize_record(json.load(f))
        except FileNotFoundError:
            raise
        except (OSError, ValueError, KeyError) as err:
            msg = f"Cannot read credential file {path}: {err}"
            raise StoreError(msg) from err

    def load(self, key: str) -> bytes | None:
        """Load a credential blob, None if absent."""
        try:
            return self._read(self._path(key)).blob
        except FileNotFoundError:
            return None

    def save(self, key: str, blob: bytes) -> None:
        """Write a credential blob through to disk."""
        record = CredentialRecord(key=key, blob=blob)
        path = self._path(key)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w") as f:
                json.dump(self._serialize_record(record), f)
            tmp_path.replace(path)
        except OSError as err:
            msg = f"Cannot write credential '{key}': {err}"
            raise StoreError(msg) from err

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as err:
            msg = f"Cannot delete credential '{key}': {err}"
            raise StoreError(msg) from err

    def delete_all(self) -> None:
        """Remove every file in the credential directory."""
        if not self.directory.exists():
            return
        try:
            for path in self.directory.iterdir():
                if path.is_file():
                    path.unlink()
        except OSError as err:
            msg = f"Cannot clear credential directory {self.directory}: {err}"
            raise StoreError(msg) from err
        logger.info("Credential directory cleared: %s", self.directory)

    def keys(self) -> list[str]:
        if not self.directory.exists():
            return []
        try:
            paths = self.directory.glob(f"*{self.SUFFIX}")
            return sorted(self._read(path).key for path in paths)
        except OSError as err:
            msg = f"Cannot list credential directory {self.directory}: {err}"
            raise StoreError(msg) from err


class MongoCredentialStore:
    """Keeps credentials as documents keyed by credential key."""

    def __init__(self, collection: Collection):
        self.collection = collection

    def load(self, key: str) -> bytes | None:
        try:
            doc = self.collection.find_one({"_id": key})
        except PyMongoError as err:
            msg = f"Cannot load credential '{key}': {err}"
            raise StoreError(msg) from err
        if doc is None:
            return None
        return bytes(doc["blob"])

    def save(self, key: str, blob: bytes) -> None:
        try:
            self.collection.replace_one(
                {"_id": key},
                {"_id": key, "blob": blob, "updated_at": time.time()},
                upsert=True,
            )
        except PyMongoError as err:
            msg = f"Cannot save credential '{key}': {err}"
            raise StoreError(msg) from err

    def delete(self, key: str) -> None:
        try:
            self.collection.delete_one({"_id": key})
        except PyMongoError as err:
            msg = f"Cannot delete credential '{key}': {err}"
            raise StoreError(msg) from err

    def delete_all(self) -> None:
        try:
            result = self.collection.delete_many({})
        except PyMongoError as err:
            msg = f"Cannot clear credential collection: {err}"
            raise StoreError(msg) from err
        logger.info("Credential collection cleared (%d documents)", result.deleted_count)

    def keys(self) -> list[str]:
        try:
            return sorted(doc["_id"] for doc in self.collection.find({}, {"_id": 1}))
        except PyMongoError as err:
            msg = f"Cannot list credential collection: {err}"
            raise StoreError(msg) from err


def build_store(config: Config) -> CredentialStore:
    """Create the credential store selected by configuration."""
    if config.STORE_BACKEND == "file":
        logger.info("Using file credential store at %s", config.AUTH_DIR)
        return FileCredentialStore(config.AUTH_DIR)
    if config.STORE_BACKEND == "mongo":
        logger.info(
            "Using mongo credential store %s.%s",
            config.MONGO_DATABASE,
            config.MONGO_COLLECTION,
        )
        client: MongoClient = MongoClient(config.MONGO_URI)
        return MongoCredentialStore(client[config.MONGO_DATABASE][config.MONGO_COLLECTION])
    msg = f"Unknown credential store backend: {config.STORE_BACKEND}"
    raise ValueError(msg)
