import logging
from contextlib import asynccontextmanager
from typing import List, Optional, Union

import stripe
from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pymongo.errors import DuplicateKeyError, PyMongoError

import orders
import role_requests
import users
from auth import FirebaseVerifier, access
from config import Settings, get_settings
from database import (
    Database,
    FAVORITES,
    MEALS,
    ORDERS,
    PAYMENTS,
    REVIEWS,
    USERS,
    utcnow,
)
from errors import ApiError, Conflict, InvalidInput, NotFound
from payments import PaymentBridge
from schemas import Favorite, Meal, Order, Review

logger = logging.getLogger(__name__)

router = APIRouter()

# -----------------------------
# Schemas for request bodies
# -----------------------------

class MealCreate(BaseModel):
    foodName: str
    chefName: str
    chefId: Optional[str] = None
    foodImage: Optional[str] = None
    price: float = Field(..., ge=0)
    ingredients: Union[str, List[str]] = Field(default_factory=list)
    estimatedDeliveryTime: Optional[str] = None
    deliveryArea: Optional[str] = None
    chefExperience: Optional[str] = None
    rating: float = Field(0, ge=0, le=5)
    userEmail: Optional[str] = None

class MealUpdate(BaseModel):
    foodName: Optional[str] = None
    chefName: Optional[str] = None
    chefId: Optional[str] = None
    foodImage: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    ingredients: Optional[Union[str, List[str]]] = None
    estimatedDeliveryTime: Optional[str] = None
    deliveryArea: Optional[str] = None
    chefExperience: Optional[str] = None

class OrderCreate(BaseModel):
    userEmail: Optional[str] = None
    chefId: Optional[str] = None
    mealId: Optional[str] = None
    mealName: str
    price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    userAddress: Optional[str] = None

class OrderStatusUpdate(BaseModel):
    status: str

class CheckoutRequest(BaseModel):
    orderId: str

class ReviewCreate(BaseModel):
    foodId: str
    mealName: Optional[str] = None
    userEmail: Optional[str] = None
    reviewerName: Optional[str] = None
    reviewerImage: Optional[str] = None
    rating: float = Field(..., ge=0, le=5)
    comment: str = ""

class ReviewUpdate(BaseModel):
    rating: Optional[float] = Field(None, ge=0, le=5)
    comment: Optional[str] = None

class FavoriteCreate(BaseModel):
    mealId: str
    mealName: Optional[str] = None
    chefId: Optional[str] = None
    chefName: Optional[str] = None
    price: Optional[float] = None
    # Ignored when a verified caller is present
    userEmail: Optional[str] = None

class UserLogin(BaseModel):
    email: str
    name: Optional[str] = None
    image: Optional[str] = None

class RoleRequestCreate(BaseModel):
    userName: str
    userEmail: str
    requestType: str

# -----------------------------
# Dependencies
# -----------------------------

def get_db(request: Request) -> Database:
    return request.app.state.db

def get_payments(request: Request) -> PaymentBridge:
    return request.app.state.payments

def owner_email(preferred: Optional[str], fallback: Optional[str]) -> str:
    email = preferred or fallback
    if not email:
        raise InvalidInput("userEmail is required")
    return email

# -----------------------------
# Health/Test
# -----------------------------

@router.get("/")
def root(_=Depends(access("GET", "/"))):
    return {"message": "Chef Meals API running"}

@router.get("/test")
def test_database(request: Request, db: Database = Depends(get_db), _=Depends(access("GET", "/test"))):
    settings = request.app.state.settings
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if settings.DATABASE_URL else "❌ Not Set",
        "database_name": "✅ Set" if settings.DATABASE_NAME else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db.db is not None:
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
            response["collections"] = db.db.list_collection_names()
    except Exception as e:
        response["database"] = f"⚠️ Error: {str(e)[:80]}"
    return response

# -----------------------------
# Meal Endpoints
# -----------------------------

@router.post("/meals")
def create_meal(payload: MealCreate, db: Database = Depends(get_db),
                principal: Optional[str] = Depends(access("POST", "/meals"))):
    data = payload.model_dump()
    data["userEmail"] = owner_email(data["userEmail"], principal)
    meal_id = db.create_document(MEALS, Meal(**data))
    return {"id": meal_id}

@router.get("/meals")
def list_meals(db: Database = Depends(get_db), _=Depends(access("GET", "/meals"))):
    return db.get_documents(MEALS)

@router.get("/meals/chef/{email}")
def list_chef_meals(email: str, db: Database = Depends(get_db), _=Depends(access("GET", "/meals/chef/{email}"))):
    return db.get_documents(MEALS, {"userEmail": email})

@router.get("/meals/{meal_id}")
def get_meal(meal_id: str, db: Database = Depends(get_db), _=Depends(access("GET", "/meals/{meal_id}"))):
    meal = db.get_document_by_id(MEALS, meal_id)
    if not meal:
        raise NotFound("Meal not found")
    return meal

@router.patch("/meals/{meal_id}")
def update_meal(meal_id: str, payload: MealUpdate, db: Database = Depends(get_db),
                _=Depends(access("PATCH", "/meals/{meal_id}"))):
    update = payload.model_dump(exclude_none=True)
    if not update:
        raise InvalidInput("Nothing to update")
    update["updatedAt"] = utcnow()
    if not db.update_document(MEALS, meal_id, update):
        raise NotFound("Meal not found")
    return {"success": True}

@router.delete("/meals/{meal_id}")
def delete_meal(meal_id: str, db: Database = Depends(get_db), _=Depends(access("DELETE", "/meals/{meal_id}"))):
    if not db.delete_document(MEALS, meal_id):
        raise NotFound("Meal not found")
    return {"success": True}

@router.get("/daily")
def daily_meals(db: Database = Depends(get_db), _=Depends(access("GET", "/daily"))):
    return db.get_documents(MEALS, sort=[("created_at", -1), ("_id", -1)], limit=6)

# -----------------------------
# Order Endpoints
# -----------------------------

@router.post("/orders")
def create_order(payload: OrderCreate, db: Database = Depends(get_db),
                 principal: Optional[str] = Depends(access("POST", "/orders"))):
    data = payload.model_dump()
    data["userEmail"] = owner_email(data["userEmail"], principal)
    order = Order(**data, orderTime=utcnow())
    order_id = db.create_document(ORDERS, order)
    return {"id": order_id}

@router.get("/my-orders/user/{email}")
def list_user_orders(email: str, db: Database = Depends(get_db),
                     _=Depends(access("GET", "/my-orders/user/{email}"))):
    return db.get_documents(ORDERS, {"userEmail": email}, sort=[("orderTime", -1), ("_id", -1)])

@router.get("/chef-orders/{chef_id}")
def list_chef_orders(chef_id: str, db: Database = Depends(get_db),
                     _=Depends(access("GET", "/chef-orders/{chef_id}"))):
    return db.get_documents(ORDERS, {"chefId": chef_id}, sort=[("orderTime", -1), ("_id", -1)])

@router.patch("/orders/{order_id}/status")
def set_order_status(order_id: str, payload: OrderStatusUpdate, db: Database = Depends(get_db),
                     _=Depends(access("PATCH", "/orders/{order_id}/status"))):
    return {"success": True, **orders.transition(db, order_id, payload.status)}

# -----------------------------
# Payment Endpoints
# -----------------------------

@router.post("/create-checkout-session")
def create_checkout_session(payload: CheckoutRequest, bridge: PaymentBridge = Depends(get_payments),
                            _=Depends(access("POST", "/create-checkout-session"))):
    return bridge.create_checkout_session(payload.orderId)

@router.patch("/payment-success")
def payment_success(session_id: str = Query(...), bridge: PaymentBridge = Depends(get_payments),
                    _=Depends(access("PATCH", "/payment-success"))):
    return bridge.reconcile(session_id)

@router.get("/payments/user/{email}")
def list_user_payments(email: str, db: Database = Depends(get_db),
                       _=Depends(access("GET", "/payments/user/{email}"))):
    return db.get_documents(PAYMENTS, {"userEmail": email}, sort=[("paidAt", -1)])

# -----------------------------
# Review Endpoints
# -----------------------------

@router.post("/reviews")
def create_review(payload: ReviewCreate, db: Database = Depends(get_db),
                  principal: Optional[str] = Depends(access("POST", "/reviews"))):
    data = payload.model_dump()
    data["userEmail"] = owner_email(data["userEmail"], principal)
    review_id = db.create_document(REVIEWS, Review(**data, date=utcnow()))
    return {"id": review_id}

@router.get("/reviews/meal/{food_id}")
def list_meal_reviews(food_id: str, db: Database = Depends(get_db),
                      _=Depends(access("GET", "/reviews/meal/{food_id}"))):
    return db.get_documents(REVIEWS, {"foodId": food_id}, sort=[("date", -1)])

@router.get("/reviews/user/{email}")
def list_user_reviews(email: str, db: Database = Depends(get_db),
                      _=Depends(access("GET", "/reviews/user/{email}"))):
    return db.get_documents(REVIEWS, {"userEmail": email}, sort=[("date", -1)])

@router.patch("/reviews/{review_id}")
def update_review(review_id: str, payload: ReviewUpdate, db: Database = Depends(get_db),
                  _=Depends(access("PATCH", "/reviews/{review_id}"))):
    update = payload.model_dump(exclude_none=True)
    if not update:
        raise InvalidInput("Nothing to update")
    update["date"] = utcnow()
    if not db.update_document(REVIEWS, review_id, update):
        raise NotFound("Review not found")
    return {"success": True}

@router.delete("/reviews/{review_id}")
def delete_review(review_id: str, db: Database = Depends(get_db),
                  _=Depends(access("DELETE", "/reviews/{review_id}"))):
    if not db.delete_document(REVIEWS, review_id):
        raise NotFound("Review not found")
    return {"success": True}

# -----------------------------
# Favorite Endpoints
# -----------------------------

@router.post("/favorites")
def add_favorite(payload: FavoriteCreate, db: Database = Depends(get_db),
                 principal: Optional[str] = Depends(access("POST", "/favorites"))):
    data = payload.model_dump()
    data["userEmail"] = owner_email(principal, data["userEmail"])
    if db.favorites.find_one({"userEmail": data["userEmail"], "mealId": data["mealId"]}, {"_id": 1}):
        raise Conflict("Meal is already in favorites")
    try:
        favorite_id = db.create_document(FAVORITES, Favorite(**data, addedTime=utcnow()))
    except DuplicateKeyError:
        raise Conflict("Meal is already in favorites")
    return {"id": favorite_id}

@router.get("/favorites/user/{email}")
def list_favorites(email: str, db: Database = Depends(get_db),
                   _=Depends(access("GET", "/favorites/user/{email}"))):
    return db.get_documents(FAVORITES, {"userEmail": email}, sort=[("addedTime", -1)])

@router.delete("/favorites/{favorite_id}")
def remove_favorite(favorite_id: str, db: Database = Depends(get_db),
                    _=Depends(access("DELETE", "/favorites/{favorite_id}"))):
    if not db.delete_document(FAVORITES, favorite_id):
        raise NotFound("Favorite not found")
    return {"success": True}

# -----------------------------
# User Endpoints
# -----------------------------

@router.post("/user")
def login_user(payload: UserLogin, db: Database = Depends(get_db), _=Depends(access("POST", "/user"))):
    return users.upsert_on_login(db, payload.email, payload.name, payload.image)

@router.get("/users")
def list_users(db: Database = Depends(get_db), _=Depends(access("GET", "/users"))):
    return db.get_documents(USERS, sort=[("created_at", -1)])

@router.get("/users/role/{email}")
def get_user_role(email: str, db: Database = Depends(get_db), _=Depends(access("GET", "/users/role/{email}"))):
    return users.get_role(db, email)

@router.get("/users/{email}")
def get_user(email: str, db: Database = Depends(get_db), _=Depends(access("GET", "/users/{email}"))):
    return users.get_user(db, email)

@router.patch("/users/fraud/{user_id}")
def flag_fraud(user_id: str, db: Database = Depends(get_db), _=Depends(access("PATCH", "/users/fraud/{user_id}"))):
    return users.flag_fraud(db, user_id)

# -----------------------------
# Role Request Endpoints
# -----------------------------

@router.post("/role-requests")
def submit_role_request(payload: RoleRequestCreate, db: Database = Depends(get_db),
                        _=Depends(access("POST", "/role-requests"))):
    return role_requests.submit(db, payload.userName, payload.userEmail, payload.requestType)

@router.get("/role-requests")
def list_role_requests(db: Database = Depends(get_db), _=Depends(access("GET", "/role-requests"))):
    return role_requests.list_requests(db)

@router.patch("/role-requests/approve/{request_id}")
def approve_role_request(request_id: str, db: Database = Depends(get_db),
                         _=Depends(access("PATCH", "/role-requests/approve/{request_id}"))):
    return role_requests.approve(db, request_id)

@router.patch("/role-requests/reject/{request_id}")
def reject_role_request(request_id: str, db: Database = Depends(get_db),
                        _=Depends(access("PATCH", "/role-requests/reject/{request_id}"))):
    return role_requests.reject(db, request_id)

# -----------------------------
# Error mapping
# -----------------------------

async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"message": "Database error", "error": str(exc)})

async def payment_error_handler(request: Request, exc: stripe.StripeError):
    logger.error("Payment provider error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"message": "Payment provider error", "error": str(exc)})

# -----------------------------
# App factory
# -----------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    db = app.state.db
    if db.db is not None:
        # Favorites and payments rely on these for their uniqueness checks
        db.ensure_indexes()
    yield


def create_app(settings: Optional[Settings] = None, db: Optional[Database] = None,
               verifier=None, payments: Optional[PaymentBridge] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    db = db or Database.from_settings(settings)

    app = FastAPI(title="Chef Meals API", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    app.state.verifier = verifier or FirebaseVerifier.from_settings(settings)
    app.state.payments = payments or PaymentBridge.from_settings(db, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(PyMongoError, database_error_handler)
    app.add_exception_handler(stripe.StripeError, payment_error_handler)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.PORT)
