"""API router aggregation."""

from fastapi import APIRouter

from repuestos.api.endpoints import (
    admin,
    auth,
    delivery,
    loyalty,
    orders,
    products,
    profile,
    promotions,
    registration_codes,
    stores,
    taxonomy,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(
    registration_codes.router, prefix="/registration-codes", tags=["Registration codes"]
)
api_router.include_router(profile.router, prefix="/profile", tags=["Profile"])
api_router.include_router(stores.router, prefix="/stores", tags=["Stores"])
api_router.include_router(taxonomy.router, tags=["Taxonomy"])
api_router.include_router(products.router, prefix="/products", tags=["Products"])
api_router.include_router(promotions.router, prefix="/promotions", tags=["Promotions"])
api_router.include_router(orders.router, prefix="/orders", tags=["Orders"])
api_router.include_router(delivery.router, prefix="/delivery", tags=["Delivery"])
api_router.include_router(loyalty.router, prefix="/loyalty", tags=["Loyalty"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
