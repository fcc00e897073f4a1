"""API v1 router initialization."""
from fastapi import APIRouter

from .auth import router as auth_router

# Create v1 router
router = APIRouter()

# Include face authentication endpoints
router.include_router(
    auth_router,
    prefix="/auth",
    tags=["auth"]
)
