"""
Role elevation requests (user -> chef / admin).

A user may hold one pending request per type. Admins approve or reject
requests; approval promotes the user and, for chefs, assigns a chef id.
"""
import logging
import random

from database import Database, ROLE_REQUESTS, to_object_id, utcnow
from errors import Conflict, Internal, InvalidInput, NotFound
from schemas import RoleRequest
from users import normalize_email

logger = logging.getLogger(__name__)

REQUEST_TYPES = ("chef", "admin")
CHEF_ID_PREFIX = "chef-"
CHEF_ID_ATTEMPTS = 20


def generate_chef_id(db: Database) -> str:
    """Pick a ``chef-NNNN`` id that no user holds yet."""
    for _ in range(CHEF_ID_ATTEMPTS):
        chef_id = f"{CHEF_ID_PREFIX}{random.randint(1000, 9999)}"
        if db.users.find_one({"chefId": chef_id}, {"_id": 1}) is None:
            return chef_id
    raise Internal("Could not allocate a unique chef id")


def submit(db: Database, user_name: str, user_email: str, request_type: str) -> dict:
    if request_type not in REQUEST_TYPES:
        raise InvalidInput(f"Invalid request type: {request_type}")
    user_email = normalize_email(user_email)

    pending = db.role_requests.find_one(
        {"userEmail": user_email, "requestType": request_type, "requestStatus": "pending"}
    )
    if pending:
        raise Conflict(f"A {request_type} request is already pending")

    request = RoleRequest(userName=user_name, userEmail=user_email, requestType=request_type,
                          requestTime=utcnow())
    request_id = db.create_document(ROLE_REQUESTS, request)
    return {"id": request_id}


def list_requests(db: Database) -> list:
    return db.get_documents(ROLE_REQUESTS, sort=[("requestTime", -1)])


def approve(db: Database, request_id: str) -> dict:
    """Promote the requesting user and mark the request approved.

    Re-running an approval (including one interrupted between the two writes)
    leaves the user with the same role and chef id.
    """
    oid = to_object_id(request_id)
    request = db.role_requests.find_one({"_id": oid})
    if not request:
        raise NotFound("Role request not found")

    request_type = request["requestType"]
    user = db.users.find_one({"email": normalize_email(request["userEmail"])})
    if not user:
        raise NotFound("User not found")

    if request.get("requestStatus") == "approved":
        return {"success": True, "role": user.get("role"), "chefId": user.get("chefId")}

    update = {"role": request_type}
    chef_id = user.get("chefId")
    if request_type == "chef" and not chef_id:
        chef_id = generate_chef_id(db)
        update["chefId"] = chef_id
    db.users.update_one({"_id": user["_id"]}, {"$set": update})

    db.role_requests.update_one(
        {"_id": oid, "requestStatus": {"$ne": "approved"}},
        {"$set": {"requestStatus": "approved"}},
    )
    logger.info("Role request %s approved: %s is now %s", request_id, user["email"], request_type)
    return {"success": True, "role": request_type, "chefId": chef_id}


def reject(db: Database, request_id: str) -> dict:
    result = db.role_requests.update_one(
        {"_id": to_object_id(request_id)}, {"$set": {"requestStatus": "rejected"}}
    )
    return {"success": True, "modifiedCount": result.modified_count}
