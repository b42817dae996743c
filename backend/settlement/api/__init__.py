# backend/settlement/api/__init__.py
from __future__ import annotations

from fastapi import APIRouter

from .payments import router as payments_router
from .receipts import router as receipts_router

api_router = APIRouter()
api_router.include_router(receipts_router)
api_router.include_router(payments_router)
