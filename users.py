"""
User records: login upsert and the admin fraud flag.
"""
import logging
from typing import Optional

from pymongo.errors import DuplicateKeyError

from database import Database, USERS, to_object_id, utcnow
from errors import InvalidInput, NotFound
from schemas import User

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def upsert_on_login(db: Database, email: str, name: Optional[str] = None, image: Optional[str] = None) -> dict:
    """Create the user on first login, otherwise only refresh ``last_loggedIn``."""
    email = normalize_email(email)
    if not email:
        raise InvalidInput("email is required")
    now = utcnow()

    existing = db.users.find_one({"email": email})
    if existing:
        db.users.update_one({"_id": existing["_id"]}, {"$set": {"last_loggedIn": now}})
        return {"created": False, "id": str(existing["_id"])}

    user = User(email=email, name=name, image=image, created_at=now, last_loggedIn=now)
    try:
        user_id = db.create_document(USERS, user)
    except DuplicateKeyError:
        # Another login for the same email won the insert
        db.users.update_one({"email": email}, {"$set": {"last_loggedIn": now}})
        existing = db.users.find_one({"email": email}, {"_id": 1})
        return {"created": False, "id": str(existing["_id"])}
    logger.info("New user %s", email)
    return {"created": True, "id": user_id}


def get_user(db: Database, email: str) -> dict:
    user = db.find_document(USERS, {"email": normalize_email(email)})
    if not user:
        raise NotFound("User not found")
    return user


def flag_fraud(db: Database, user_id: str) -> dict:
    if not db.update_document(USERS, user_id, {"status": "fraud"}):
        raise NotFound("User not found")
    logger.info("User %s flagged as fraud", user_id)
    return {"success": True, "status": "fraud"}


def get_role(db: Database, email: str) -> dict:
    user = get_user(db, email)
    return {"role": user.get("role", "user"), "status": user.get("status", "active")}
