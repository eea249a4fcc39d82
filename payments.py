"""
Stripe checkout integration.

Paying for an order happens in two steps: create a hosted checkout session,
then, once the customer is redirected back, reconcile the session into the
order and the payment history.
"""
import logging
from typing import Optional

import stripe

from database import Database, to_object_id, utcnow
from errors import Internal, NotFound
from schemas import Payment

logger = logging.getLogger(__name__)


def to_minor_units(amount: float) -> int:
    """Convert to cents"""
    return int(round(amount * 100))


class PaymentBridge:
    def __init__(self, db: Database, api_key: Optional[str], currency: str = "usd",
                 client_url: str = "http://localhost:5173"):
        self.db = db
        self.api_key = api_key
        self.currency = currency
        self.client_url = client_url.rstrip("/")

    @classmethod
    def from_settings(cls, db: Database, settings) -> "PaymentBridge":
        return cls(db, settings.STRIPE_SECRET_KEY, settings.PAYMENT_CURRENCY, settings.client_url)

    def _ensure_configured(self):
        if not self.api_key:
            raise Internal("Payment provider not configured")

    def create_checkout_session(self, order_id: str) -> dict:
        """Open a checkout session for the order's total and return its redirect URL."""
        self._ensure_configured()
        order = self.db.orders.find_one({"_id": to_object_id(order_id)})
        if not order:
            raise NotFound("Order not found")

        total = float(order.get("price", 0)) * int(order.get("quantity", 1))
        session = stripe.checkout.Session.create(
            api_key=self.api_key,
            payment_method_types=["card"],
            mode="payment",
            line_items=[
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {"name": order.get("mealName", "Meal")},
                        "unit_amount": to_minor_units(total),
                    },
                    "quantity": 1,
                }
            ],
            metadata={
                "orderId": str(order["_id"]),
                "userEmail": order.get("userEmail") or "",
            },
            success_url=f"{self.client_url}/payment-success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{self.client_url}/my-orders",
        )
        logger.info("Checkout session %s created for order %s", session.id, order_id)
        return {"url": session.url}

    def reconcile(self, session_id: str) -> dict:
        """Record the outcome of a checkout session.

        Safe to call repeatedly for the same session: the order is only
        marked paid once and the payment history is keyed by session id.
        """
        self._ensure_configured()
        session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)

        if session.payment_status != "paid":
            logger.info("Session %s not paid (status %s)", session_id, session.payment_status)
            return {"success": False, "message": "Payment not completed."}

        order_id = session.metadata["orderId"]
        order_oid = to_object_id(order_id)
        if self.db.orders.find_one({"_id": order_oid}, {"_id": 1}) is None:
            logger.error("Session %s is paid but order %s does not exist", session_id, order_id)
            raise NotFound("Order not found")
        paid_at = utcnow()

        order_update = self.db.orders.update_one(
            {"_id": order_oid, "paymentStatus": {"$ne": "paid"}},
            {"$set": {"paymentStatus": "paid", "paidAt": paid_at}},
        )

        record = Payment(
            orderId=order_id,
            userEmail=session.metadata["userEmail"] or None,
            amount=session.amount_total / 100,
            currency=session.currency,
            transactionId=session.payment_intent,
            paymentStatus=session.payment_status,
            sessionId=session.id,
            paidAt=paid_at,
        ).model_dump()
        record.pop("sessionId")
        record["created_at"] = paid_at
        result = self.db.payments.update_one(
            {"sessionId": session.id}, {"$setOnInsert": record}, upsert=True
        )
        already_recorded = result.upserted_id is None
        order_updated = order_update.modified_count > 0
        if already_recorded:
            payment = self.db.payments.find_one({"sessionId": session.id}, {"_id": 1})
            payment_id = str(payment["_id"])
        else:
            payment_id = str(result.upserted_id)

        logger.info(
            "Session %s reconciled for order %s (order updated: %s, already recorded: %s)",
            session.id, order_id, order_updated, already_recorded,
        )
        return {
            "success": True,
            "message": "Payment completed and order updated." if order_updated else "Payment already recorded.",
            "orderId": order_id,
            "orderUpdated": order_updated,
            "transactionId": session.payment_intent,
            "paymentId": payment_id,
            "alreadyRecorded": already_recorded,
        }
