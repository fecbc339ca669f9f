# storefront/main.py
from datetime import datetime
from typing import Callable

from fastapi import FastAPI
from storefront.api.routers import admin, carts, health, orders, payments, products, users
from storefront.data.database import Database
from storefront.services.lock_service import LockService
from storefront.services.payment_gateway import RazorpayClient
from storefront.utils.clock import utcnow
from storefront.utils.logging import get_logger
import uvicorn

logger = get_logger(__name__)


def create_app(
    database: Database | None = None,
    gateway: RazorpayClient | None = None,
    lock_service: LockService | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    """
    Skladanie aplikacji. Baza, bramka i lock przekazywane jawnie -
    zadnych globalnych sesji na poziomie modulu.
    """
    database = database or Database()
    gateway = gateway or RazorpayClient()
    lock_service = lock_service or LockService()

    logger.info("Initializing database tables")
    database.create_all()

    if not gateway.configured:
        logger.warning("Razorpay keys are not configured. Payment APIs will fail.")

    app = FastAPI(
        title="Storefront Checkout Service",
        version="1.0.0",
    )
    app.state.database = database
    app.state.gateway = gateway
    app.state.lock_service = lock_service
    app.state.clock = clock

    # Include routers
    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(products.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(payments.router)
    app.include_router(admin.router)

    return app


if __name__ == "__main__":
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
