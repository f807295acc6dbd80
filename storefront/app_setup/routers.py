"""
Registre central des routers (API v1 et health).
"""
from fastapi import FastAPI
from storefront.cart import views as cart_views
from storefront.coupons import views as coupons_views
from storefront.checkout import views as checkout_views
from storefront.settlement import views as settlement_views
from storefront.orders import views as orders_views
from storefront.health.router import router as health_router


def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(cart_views.router)
    app.include_router(cart_views.session_router)
    app.include_router(coupons_views.router)
    app.include_router(checkout_views.router)
    app.include_router(settlement_views.router)
    app.include_router(orders_views.router)
    # Health & monitoring
    app.include_router(health_router)
