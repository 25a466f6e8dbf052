"""API router setup."""
from fastapi import APIRouter

from app.api.routes import appointments, auth, professionals

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(professionals.router)
api_router.include_router(appointments.router)
