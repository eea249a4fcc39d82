"""
Database Schemas for the Chef Meals API

Each Pydantic model represents one MongoDB collection. Field names match the
stored documents (camelCase, as the web client sends them).
"""
from datetime import datetime
from typing import List, Optional, Literal, Union

from pydantic import BaseModel, Field

OrderStatus = Literal["pending", "accepted", "cancelled", "delivered"]
Role = Literal["user", "chef", "admin"]
RequestType = Literal["chef", "admin"]
RequestStatus = Literal["pending", "approved", "rejected"]

# -----------------------------
# Core Collections
# -----------------------------

class Meal(BaseModel):
    foodName: str = Field(..., description="Dish name")
    chefName: str = Field(..., description="Display name of the chef")
    chefId: Optional[str] = Field(None, description="Chef identifier assigned on approval")
    foodImage: Optional[str] = Field(None, description="Image URL for the dish")
    price: float = Field(..., ge=0, description="Unit price")
    ingredients: Union[str, List[str]] = Field(default_factory=list, description="List or comma-separated text, stored as sent")
    estimatedDeliveryTime: Optional[str] = None
    deliveryArea: Optional[str] = None
    chefExperience: Optional[str] = None
    rating: float = Field(0, ge=0, le=5)
    userEmail: str = Field(..., description="Email of the chef who created the meal")
    updatedAt: Optional[datetime] = None

class Order(BaseModel):
    userEmail: str
    chefId: Optional[str] = None
    mealId: Optional[str] = Field(None, description="Meal ObjectId as string")
    mealName: str
    price: float = Field(..., ge=0, description="Unit price at the time of order")
    quantity: int = Field(1, ge=1)
    userAddress: Optional[str] = None
    orderStatus: OrderStatus = Field("pending")
    paymentStatus: str = Field("pending")
    paidAt: Optional[datetime] = None
    orderTime: datetime

class Payment(BaseModel):
    orderId: str = Field(..., description="Order ObjectId as string")
    userEmail: Optional[str] = None
    amount: float = Field(..., ge=0, description="Amount in major currency units")
    currency: str
    transactionId: Optional[str] = Field(None, description="Provider payment intent id")
    paymentStatus: str
    sessionId: str = Field(..., description="Provider checkout session id")
    paidAt: datetime

class User(BaseModel):
    email: str = Field(..., description="Lower-cased, trimmed email address")
    name: Optional[str] = None
    image: Optional[str] = None
    role: Role = Field("user")
    status: Literal["active", "fraud"] = Field("active")
    chefId: Optional[str] = None
    created_at: datetime
    last_loggedIn: datetime

class RoleRequest(BaseModel):
    userName: str
    userEmail: str
    requestType: RequestType
    requestStatus: RequestStatus = Field("pending")
    requestTime: datetime

class Review(BaseModel):
    foodId: str = Field(..., description="Meal ObjectId as string")
    mealName: Optional[str] = None
    userEmail: str
    reviewerName: Optional[str] = None
    reviewerImage: Optional[str] = None
    rating: float = Field(..., ge=0, le=5)
    comment: str = ""
    date: datetime

class Favorite(BaseModel):
    userEmail: str
    mealId: str
    mealName: Optional[str] = None
    chefId: Optional[str] = None
    chefName: Optional[str] = None
    price: Optional[float] = None
    addedTime: datetime

# Notes:
# - Use the Database gateway (database.py) for inserts/queries
# - The request bodies in main.py are the client-facing subsets of these models
