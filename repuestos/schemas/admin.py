"""Admin dashboard schemas."""

from typing import Dict

from pydantic import BaseModel


class DashboardStats(BaseModel):
    """Marketplace-wide counters."""

    users_by_role: Dict[str, int]
    total_users: int
    active_stores: int
    total_stores: int
    live_products: int
    orders_by_status: Dict[str, int]
    total_orders: int
    revenue: float
