"""
Database Helper Functions

A thin MongoDB gateway built once at startup and handed to every handler.
Each collection is queried and mutated independently; there are no joins and
no multi-document transactions.
"""

from datetime import datetime, timezone
from typing import Union, Optional, List, Dict, Any

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient

from errors import Internal, InvalidInput

MEALS = "meals"
ORDERS = "orders"
PAYMENTS = "payments"
USERS = "users"
ROLE_REQUESTS = "roleRequests"
REVIEWS = "reviews"
FAVORITES = "favorites"


# ------------- Utilities -------------

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise InvalidInput(f"Invalid id: {id_str}")


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])  # type: ignore
    return doc


class Database:
    """Collection access for the API. Pass ``db=None`` for an unconfigured gateway."""

    def __init__(self, db=None):
        self.db = db

    @classmethod
    def from_settings(cls, settings) -> "Database":
        if settings.DATABASE_URL and settings.DATABASE_NAME:
            client = MongoClient(settings.DATABASE_URL)
            return cls(client[settings.DATABASE_NAME])
        return cls(None)

    def _ensure_db(self):
        if self.db is None:
            raise Internal("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")

    def collection(self, name: str):
        self._ensure_db()
        return self.db[name]

    @property
    def meals(self):
        return self.collection(MEALS)

    @property
    def orders(self):
        return self.collection(ORDERS)

    @property
    def payments(self):
        return self.collection(PAYMENTS)

    @property
    def users(self):
        return self.collection(USERS)

    @property
    def role_requests(self):
        return self.collection(ROLE_REQUESTS)

    @property
    def reviews(self):
        return self.collection(REVIEWS)

    @property
    def favorites(self):
        return self.collection(FAVORITES)

    def ensure_indexes(self):
        """Create the unique indexes the handlers rely on."""
        self.users.create_index([("email", ASCENDING)], unique=True)
        self.favorites.create_index([("userEmail", ASCENDING), ("mealId", ASCENDING)], unique=True)
        self.payments.create_index([("sessionId", ASCENDING)], unique=True)

    # Helper functions for common database operations

    def create_document(self, collection_name: str, data: Union[BaseModel, dict]) -> str:
        """Insert a single document with a creation timestamp"""
        if isinstance(data, BaseModel):
            data_dict = data.model_dump()
        else:
            data_dict = data.copy()
        data_dict.setdefault("created_at", utcnow())

        result = self.collection(collection_name).insert_one(data_dict)
        return str(result.inserted_id)

    def get_documents(self, collection_name: str, filter_dict: dict = None, limit: Optional[int] = None,
                      sort: Optional[List[tuple]] = None) -> List[dict]:
        cursor = self.collection(collection_name).find(filter_dict or {})
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return [serialize_doc(d) for d in cursor]

    def find_document(self, collection_name: str, filter_dict: dict) -> Optional[dict]:
        return serialize_doc(self.collection(collection_name).find_one(filter_dict))

    def get_document_by_id(self, collection_name: str, id_str: str) -> Optional[dict]:
        return self.find_document(collection_name, {"_id": to_object_id(id_str)})

    def update_document(self, collection_name: str, id_str: str, update_data: dict) -> bool:
        """Set fields on one document; True when the document exists."""
        result = self.collection(collection_name).update_one(
            {"_id": to_object_id(id_str)}, {"$set": update_data}
        )
        return result.matched_count > 0

    def delete_document(self, collection_name: str, id_str: str) -> bool:
        result = self.collection(collection_name).delete_one({"_id": to_object_id(id_str)})
        return result.deleted_count > 0
