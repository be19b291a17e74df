"""
Database access for the chat backend.

Two collections are used: "participants" (keyed by name) and "messages"
(keyed by a generated ObjectId). Everything goes through Store, which wraps
a pymongo Database, or the in-memory stand-in when no DATABASE_URL is set,
and turns driver failures into StoreUnavailable.
"""
import copy
import logging
import threading
from datetime import datetime
from functools import wraps
from typing import Any, Dict, List, Optional, Tuple

from bson.objectid import ObjectId
from pymongo import ASCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import Settings
from errors import Conflict, StoreUnavailable

logger = logging.getLogger(__name__)

PARTICIPANTS = "participants"
MESSAGES = "messages"


def to_str_id(doc):
    if not doc:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        if isinstance(v, datetime):
            d[k] = v.isoformat()
    return d


def parse_id(value: str) -> Optional[ObjectId]:
    """ObjectId for a client supplied id, None when it cannot be one."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def _translate_errors(func):
    """Re-raise driver failures as StoreUnavailable."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DuplicateKeyError as e:
            raise Conflict("Duplicate key", [str(e)]) from e
        except PyMongoError as e:
            logger.error(f"Database operation {func.__name__} failed: {e}")
            raise StoreUnavailable("Database unavailable", [str(e)]) from e
    return wrapper


class Store:
    """Collection level operations; each call is a single atomic driver op."""

    def __init__(self, db, kind: str = "mongodb"):
        self.db = db
        self.kind = kind

    @_translate_errors
    def ensure_indexes(self):
        self.db[PARTICIPANTS].create_index([("name", ASCENDING)], unique=True)

    @_translate_errors
    def create_document(self, collection_name: str, data: Dict[str, Any]) -> str:
        result = self.db[collection_name].insert_one(dict(data))
        return str(result.inserted_id)

    @_translate_errors
    def find_document(self, collection_name: str, filter_dict: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self.db[collection_name].find_one(filter_dict)

    @_translate_errors
    def get_documents(
        self,
        collection_name: str,
        filter_dict: Optional[Dict[str, Any]] = None,
        sort: Optional[Tuple[str, int]] = None,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        cursor = self.db[collection_name].find(filter_dict or {})
        if sort:
            cursor = cursor.sort(*sort)
        if limit and limit > 0:
            cursor = cursor.limit(limit)
        return list(cursor)

    @_translate_errors
    def update_document(self, collection_name: str, filter_dict: Dict[str, Any], values: Dict[str, Any]) -> int:
        result = self.db[collection_name].update_one(filter_dict, {"$set": values})
        return result.matched_count

    @_translate_errors
    def delete_document(self, collection_name: str, filter_dict: Dict[str, Any]) -> int:
        return self.db[collection_name].delete_one(filter_dict).deleted_count

    @_translate_errors
    def delete_documents(self, collection_name: str, filter_dict: Dict[str, Any]) -> int:
        return self.db[collection_name].delete_many(filter_dict).deleted_count

    @_translate_errors
    def list_collection_names(self) -> List[str]:
        return self.db.list_collection_names()


# In-memory backend

class _InsertOneResult:
    def __init__(self, inserted_id):
        self.inserted_id = inserted_id


class _UpdateResult:
    def __init__(self, matched_count: int):
        self.matched_count = matched_count
        self.modified_count = matched_count


class _DeleteResult:
    def __init__(self, deleted_count: int):
        self.deleted_count = deleted_count


def _matches(doc: Dict[str, Any], filter_dict: Dict[str, Any]) -> bool:
    for key, cond in filter_dict.items():
        if key == "$or":
            if not any(_matches(doc, sub) for sub in cond):
                return False
            continue
        value = doc.get(key)
        if isinstance(cond, dict):
            for op, operand in cond.items():
                if op == "$lt":
                    if value is None or not value < operand:
                        return False
                elif op == "$in":
                    if value not in operand:
                        return False
                else:
                    raise ValueError(f"Unsupported query operator {op}")
        elif value != cond:
            return False
    return True


class MemoryCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = docs

    def sort(self, key: str, direction: int = ASCENDING):
        self._docs.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def limit(self, n: int):
        if n > 0:
            self._docs = self._docs[:n]
        return self

    def __iter__(self):
        return iter(self._docs)


class MemoryCollection:
    """The subset of pymongo's Collection API that Store relies on."""

    def __init__(self):
        self._docs: List[Dict[str, Any]] = []
        self._unique: List[str] = []
        self._lock = threading.Lock()

    def create_index(self, keys, unique: bool = False):
        if unique:
            self._unique.extend(k for k, _ in keys)

    def _check_unique(self, doc, ignore=None):
        for field in self._unique:
            for other in self._docs:
                if other is not ignore and field in doc and other.get(field) == doc[field]:
                    raise DuplicateKeyError(f"E11000 duplicate key error: {field}", 11000)

    def insert_one(self, doc):
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        with self._lock:
            self._check_unique(doc)
            self._docs.append(doc)
        return _InsertOneResult(doc["_id"])

    def find_one(self, filter_dict=None):
        with self._lock:
            for doc in self._docs:
                if _matches(doc, filter_dict or {}):
                    return copy.deepcopy(doc)
        return None

    def find(self, filter_dict=None):
        with self._lock:
            docs = [copy.deepcopy(d) for d in self._docs if _matches(d, filter_dict or {})]
        return MemoryCursor(docs)

    def update_one(self, filter_dict, update):
        values = update.get("$set", {})
        with self._lock:
            for doc in self._docs:
                if _matches(doc, filter_dict):
                    self._check_unique(dict(doc, **values), ignore=doc)
                    doc.update(copy.deepcopy(values))
                    return _UpdateResult(1)
        return _UpdateResult(0)

    def delete_one(self, filter_dict):
        with self._lock:
            for i, doc in enumerate(self._docs):
                if _matches(doc, filter_dict):
                    del self._docs[i]
                    return _DeleteResult(1)
        return _DeleteResult(0)

    def delete_many(self, filter_dict):
        with self._lock:
            kept = [d for d in self._docs if not _matches(d, filter_dict)]
            deleted = len(self._docs) - len(kept)
            self._docs = kept
        return _DeleteResult(deleted)


class MemoryDatabase:
    """Process local database used for development and tests."""

    def __init__(self):
        self._collections: Dict[str, MemoryCollection] = {}

    def __getitem__(self, name: str) -> MemoryCollection:
        if name not in self._collections:
            self._collections[name] = MemoryCollection()
        return self._collections[name]

    def list_collection_names(self) -> List[str]:
        return list(self._collections)


def connect(settings: Settings) -> Store:
    """Open the store described by settings."""
    if not settings.database_url:
        logger.error("DATABASE_URL not set, using in-memory store: data is lost on restart")
        store = Store(MemoryDatabase(), kind="memory")
    else:
        client = MongoClient(settings.database_url, serverSelectionTimeoutMS=5000)
        store = Store(client[settings.database_name])
        logger.info(f"Connected to MongoDB database '{settings.database_name}'")
    try:
        store.ensure_indexes()
    except StoreUnavailable:
        logger.error("Could not create indexes, continuing without them")
    return store


def memory_store() -> Store:
    store = Store(MemoryDatabase(), kind="memory")
    store.ensure_indexes()
    return store
