"""Versioned API router."""

from fastapi import APIRouter

from . import auth, bookings, health, me, promotions, providers, quotes

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(providers.router)
router.include_router(quotes.router)
router.include_router(promotions.router)
router.include_router(bookings.router)
router.include_router(me.router)
