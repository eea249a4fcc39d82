"""
Order status lifecycle.

    pending  -> accepted | cancelled
    accepted -> delivered | cancelled

cancelled and delivered are final.
"""
import logging

from database import Database, ORDERS, to_object_id
from errors import AlreadyFinalized, Conflict, IllegalTransition, InvalidStatus, NotFound

logger = logging.getLogger(__name__)

TARGET_STATUSES = ("cancelled", "accepted", "delivered")
FINAL_STATUSES = ("cancelled", "delivered")


def transition(db: Database, order_id: str, target_status: str) -> dict:
    """Move an order to ``target_status`` and return the updated order."""
    oid = to_object_id(order_id)
    order = db.orders.find_one({"_id": oid})
    if not order:
        raise NotFound("Order not found")

    if target_status not in TARGET_STATUSES:
        raise InvalidStatus(f"Invalid status: {target_status}")

    current = order.get("orderStatus", "pending")
    if current in FINAL_STATUSES:
        raise AlreadyFinalized(f"Order is already {current}")
    if target_status == "delivered" and current != "accepted":
        raise IllegalTransition("Only accepted orders can be delivered")

    # Only write if nobody changed the status since we read it
    status_filter = {"_id": oid, "orderStatus": current}
    if "orderStatus" not in order:
        status_filter["orderStatus"] = {"$exists": False}
    result = db.orders.update_one(status_filter, {"$set": {"orderStatus": target_status}})
    if result.matched_count == 0:
        raise Conflict("Order status changed while updating, try again")

    logger.info("Order %s: %s -> %s", order_id, current, target_status)
    return {"orderId": order_id, "orderStatus": target_status, "previousStatus": current}
