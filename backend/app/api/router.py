"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from app.api.routes import admin, athletes, auth, bookings, facilities, notifications, reviews, trainers

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(bookings.router)
api_router.include_router(facilities.router)
api_router.include_router(trainers.router)
api_router.include_router(reviews.router)
api_router.include_router(athletes.router)
api_router.include_router(notifications.router)
api_router.include_router(admin.router)
