# storefront/api/__init__.py
from fastapi import FastAPI

from storefront.api.errors import register_exception_handlers
from storefront.api.routers import carts, customers, health, orders, payments


def include_routers(app: FastAPI) -> None:
    app.include_router(health.router)
    app.include_router(customers.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(payments.router)
    register_exception_handlers(app)
