"""
Registre central des routers.
- API v1: payments, coupons, orders, enrollments
- Admin: coupons, commandes
- Health: health_router
"""
from fastapi import FastAPI
from storefront.payments import views as payments_views
from storefront.coupons import views as coupons_views
from storefront.orders import views as orders_views
from storefront.enrollments import views as enrollments_views
from storefront.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(payments_views.router)
    app.include_router(coupons_views.router)
    app.include_router(orders_views.router)
    app.include_router(enrollments_views.router)
    # Admin
    app.include_router(coupons_views.admin_router)
    app.include_router(orders_views.admin_router)
    # Health & monitoring
    app.include_router(health_router)
