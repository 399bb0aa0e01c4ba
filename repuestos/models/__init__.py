"""Database models module."""

from repuestos.models.base import BaseModel, TimestampMixin, SoftDeleteMixin
from repuestos.models.user import User, Activity, TwoFactorChallenge
from repuestos.models.registration_code import RegistrationCode
from repuestos.models.store import Store, store_managers
from repuestos.models.catalog import Category, Subcategory, Brand, Product
from repuestos.models.promotion import Promotion, promotion_products, promotion_categories
from repuestos.models.order import Order, OrderItem
from repuestos.models.loyalty import Reward, RewardRedemption, Review

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "SoftDeleteMixin",
    "User",
    "Activity",
    "TwoFactorChallenge",
    "RegistrationCode",
    "Store",
    "store_managers",
    "Category",
    "Subcategory",
    "Brand",
    "Product",
    "Promotion",
    "promotion_products",
    "promotion_categories",
    "Order",
    "OrderItem",
    "Reward",
    "RewardRedemption",
    "Review",
]
