"""HTTP API router."""

from fastapi import APIRouter

from porter.api import admin, drivers, orders, vehicles

router = APIRouter()

router.include_router(orders.router)
router.include_router(drivers.router)
router.include_router(vehicles.router)
router.include_router(admin.router)
