"""Order placement, status workflow and cancellation."""

import logging
import secrets
import uuid
from collections import OrderedDict
from datetime import timedelta
from decimal import Decimal
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repuestos.config.settings import settings
from repuestos.core.exceptions import BadRequestException
from repuestos.models.base import money, utcnow
from repuestos.models.catalog import Product
from repuestos.models.order import Order, OrderItem
from repuestos.models.promotion import Promotion
from repuestos.models.store import Store
from repuestos.models.user import User
from repuestos.schemas.order import OrderCreate
from repuestos.services.activity import log_activity
from repuestos.services.loyalty import award_order_points
from repuestos.services.pricing import best_price, running_promotions

logger = logging.getLogger(__name__)

STATUS_TRANSITIONS: Dict[str, tuple] = {
    "pending": ("confirmed", "on_hold", "cancelled"),
    "confirmed": ("processing", "on_hold", "cancelled"),
    "processing": ("ready_for_delivery", "ready_for_pickup", "on_hold", "cancelled"),
    "on_hold": ("pending", "confirmed", "processing", "cancelled"),
    "ready_for_pickup": ("completed",),
    "ready_for_delivery": ("out_for_delivery",),
    "out_for_delivery": ("delivered",),
    "delivered": ("completed", "refunded"),
    "completed": ("refunded",),
    "cancelled": (),
    "refunded": (),
}

STATUS_TIMESTAMPS = {
    "confirmed": "confirmed_at",
    "out_for_delivery": "shipped_at",
    "delivered": "delivered_at",
    "completed": "completed_at",
    "cancelled": "cancelled_at",
    "refunded": "refunded_at",
}

COURIER_STATUSES = ("out_for_delivery", "delivered")
REVENUE_STATUSES = ("delivered", "completed")


def generate_order_number() -> str:
    return f"ORD-{utcnow():%Y%m%d}-{secrets.token_hex(4).upper()}"


def can_transition(current: str, new: str) -> bool:
    return new in STATUS_TRANSITIONS.get(current, ())


def _merge_quantities(data: OrderCreate) -> "OrderedDict[uuid.UUID, int]":
    quantities: "OrderedDict[uuid.UUID, int]" = OrderedDict()
    for item in data.items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
    return quantities


async def create_order(db: AsyncSession, user: User, data: OrderCreate) -> Order:
    """Price, validate and place an order against a single store.

    Stock is reserved by decrementing it in the same transaction. Each
    promotion applied counts one use for the order.
    """
    quantities = _merge_quantities(data)

    result = await db.execute(
        select(Product).where(Product.id.in_(list(quantities))).with_for_update()
    )
    products = {p.id: p for p in result.scalars().all()}

    for product_id in quantities:
        product = products.get(product_id)
        if product is None or not product.is_available:
            raise BadRequestException(detail=f"Product {product_id} is not available")

    store_ids = {p.store_id for p in products.values()}
    if len(store_ids) != 1:
        raise BadRequestException(detail="All products in an order must come from the same store")
    store_id = store_ids.pop()

    store = await db.get(Store, store_id)
    if store is None or not store.is_active:
        raise BadRequestException(detail="Store is not accepting orders")

    for product_id, quantity in quantities.items():
        product = products[product_id]
        if product.stock < quantity:
            raise BadRequestException(
                detail=f"Insufficient stock for {product.name}: {product.stock} available"
            )

    now = utcnow()
    promotions = await running_promotions(db, store_id, at=now, for_update=True)

    items: List[OrderItem] = []
    used_promotions: Dict[uuid.UUID, Promotion] = {}
    subtotal = Decimal("0.00")
    discount_total = Decimal("0.00")

    for product_id, quantity in quantities.items():
        product = products[product_id]
        price = best_price(product, promotions, at=now)
        line_subtotal = money(price.original_price * quantity)
        line_discount = money(price.discount * quantity)
        subtotal += line_subtotal
        discount_total += line_discount
        if price.promotion is not None:
            used_promotions[price.promotion.id] = price.promotion

        items.append(
            OrderItem(
                product_id=product.id,
                product_name=product.name,
                sku=product.sku,
                quantity=quantity,
                unit_price=price.original_price,
                discount_amount=line_discount,
                total_price=money(line_subtotal - line_discount),
                promotion_id=price.promotion_id,
            )
        )
        product.stock -= quantity

    for promotion in used_promotions.values():
        promotion.current_uses += 1

    taxable = money(subtotal - discount_total)
    tax = money(taxable * settings.tax_rate)
    shipping = money(settings.delivery_fee) if data.shipping_method == "delivery" else money(0)

    address = data.shipping_address
    order = Order(
        order_number=generate_order_number(),
        user_id=user.id,
        store_id=store_id,
        payment_method=data.payment_method,
        shipping_method=data.shipping_method,
        shipping_name=address.name if address else user.name,
        shipping_phone=address.phone if address else user.phone,
        shipping_address=address.address if address else None,
        shipping_city=address.city if address else None,
        shipping_state=address.state if address else None,
        shipping_zip_code=address.zip_code if address else None,
        subtotal=money(subtotal),
        discount_amount=money(discount_total),
        tax_amount=tax,
        shipping_cost=shipping,
        total_amount=money(taxable + tax + shipping),
        currency=settings.currency,
        notes=data.notes,
        items=items,
    )
    db.add(order)
    await db.flush()

    log_activity(
        db,
        user.id,
        "order_placed",
        f"Placed order {order.order_number}",
        order_id=order.id,
        total=str(order.total_amount),
    )
    logger.info("Order %s placed by %s for store %s", order.order_number, user.id, store_id)
    return order


async def restock(db: AsyncSession, order: Order) -> None:
    product_ids = [item.product_id for item in order.items]
    result = await db.execute(
        select(Product).where(Product.id.in_(product_ids)).with_for_update()
    )
    products = {p.id: p for p in result.scalars().all()}
    for item in order.items:
        product = products.get(item.product_id)
        if product is not None:
            product.stock += item.quantity


async def release_promotions(db: AsyncSession, order: Order) -> None:
    """Give back the one use each promotion counted for this order."""
    promotion_ids = {item.promotion_id for item in order.items if item.promotion_id}
    if not promotion_ids:
        return
    result = await db.execute(
        select(Promotion).where(Promotion.id.in_(promotion_ids)).with_for_update()
    )
    for promotion in result.scalars().all():
        promotion.current_uses = max(promotion.current_uses - 1, 0)


async def cancel_order(db: AsyncSession, order: Order, reason: str = None) -> Order:
    """Cancel before dispatch. Stock and promotion uses are returned.

    Cancellable orders are never out for delivery, so the courier status stays.
    """
    if not order.can_be_cancelled:
        raise BadRequestException(detail=f"Order cannot be cancelled in status {order.status}")

    await restock(db, order)
    await release_promotions(db, order)
    order.status = "cancelled"
    order.payment_status = "cancelled"
    order.cancelled_at = utcnow()
    order.cancel_reason = reason
    logger.info("Order %s cancelled", order.order_number)
    return order


async def set_courier_status(db: AsyncSession, order: Order, status: str) -> None:
    if order.assigned_delivery_id is None:
        return
    courier = await db.get(User, order.assigned_delivery_id)
    if courier is not None:
        courier.delivery_status = status


async def change_status(db: AsyncSession, order: Order, new_status: str) -> Order:
    """Move an order along the status workflow, stamping timestamps and side effects."""
    if new_status == order.status:
        raise BadRequestException(detail=f"Order is already {new_status}")
    if not can_transition(order.status, new_status):
        raise BadRequestException(
            detail=f"Cannot change order status from {order.status} to {new_status}"
        )

    if new_status == "cancelled":
        return await cancel_order(db, order)

    if new_status == "out_for_delivery" and order.assigned_delivery_id is None:
        raise BadRequestException(detail="Assign a delivery user before dispatching the order")

    if new_status == "refunded":
        if order.payment_status != "paid":
            raise BadRequestException(detail="Only paid orders can be refunded")
        order.payment_status = "refunded"

    order.status = new_status
    stamp = STATUS_TIMESTAMPS.get(new_status)
    if stamp:
        setattr(order, stamp, utcnow())

    if new_status == "out_for_delivery":
        await set_courier_status(db, order, "on_route")
    elif new_status == "delivered":
        await set_courier_status(db, order, "available")

    if new_status in REVENUE_STATUSES:
        order.fulfillment_status = "fulfilled"
        await award_order_points(db, order)

    return order


async def assign_delivery(db: AsyncSession, order: Order, courier: User) -> Order:
    if courier.role != "delivery" or not courier.is_active:
        raise BadRequestException(detail="User is not an active delivery user")
    if order.status in ("delivered", "completed", "cancelled", "refunded"):
        raise BadRequestException(detail=f"Cannot assign delivery to a {order.status} order")
    if order.shipping_method != "delivery":
        raise BadRequestException(detail="Pickup orders do not need a delivery user")

    order.assigned_delivery_id = courier.id
    order.estimated_delivery = utcnow() + timedelta(hours=settings.estimated_delivery_hours)
    return order
