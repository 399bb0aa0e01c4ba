"""Order schemas."""

from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

OrderStatus = Literal[
    "pending",
    "confirmed",
    "processing",
    "on_hold",
    "ready_for_pickup",
    "ready_for_delivery",
    "out_for_delivery",
    "delivered",
    "completed",
    "cancelled",
    "refunded",
]
PaymentStatus = Literal["pending", "paid", "failed", "refunded", "cancelled"]


class OrderItemCreate(BaseModel):
    product_id: UUID
    quantity: int = Field(..., ge=1, le=1000)


class ShippingAddress(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    phone: str = Field(..., min_length=5, max_length=30)
    address: str = Field(..., min_length=3, max_length=255)
    city: str = Field(..., min_length=2, max_length=80)
    state: str = Field(..., min_length=2, max_length=80)
    zip_code: Optional[str] = Field(None, max_length=20)


class OrderCreate(BaseModel):
    """Schema for placing an order."""

    items: List[OrderItemCreate] = Field(..., min_length=1)
    payment_method: Literal["cash", "card", "transfer", "pago_movil", "zelle"]
    shipping_method: Literal["delivery", "pickup"]
    shipping_address: Optional[ShippingAddress] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def check_shipping(self):
        if self.shipping_method == "delivery" and self.shipping_address is None:
            raise ValueError("shipping_address is required for delivery orders")
        return self


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    product_name: str
    sku: str
    quantity: int
    unit_price: float
    discount_amount: float
    total_price: float
    promotion_id: Optional[UUID] = None


class OrderResponse(BaseModel):
    """Response schema for order."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    user_id: UUID
    store_id: UUID
    status: str
    payment_status: str
    fulfillment_status: str
    payment_method: str
    shipping_method: str
    shipping_name: Optional[str] = None
    shipping_phone: Optional[str] = None
    shipping_address: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_state: Optional[str] = None
    shipping_zip_code: Optional[str] = None
    subtotal: float
    discount_amount: float
    tax_amount: float
    shipping_cost: float
    total_amount: float
    currency: str
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    assigned_delivery_id: Optional[UUID] = None
    estimated_delivery: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    points_awarded: bool
    items: List[OrderItemResponse] = []
    created_at: datetime


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    notes: Optional[str] = Field(None, max_length=1000)


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus


class OrderCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


class DeliveryAssign(BaseModel):
    delivery_user_id: UUID


class OrderStats(BaseModel):
    total_orders: int
    by_status: Dict[str, int]
    total_revenue: float
    average_order_value: float
