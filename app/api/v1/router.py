from fastapi import APIRouter

# Public: bookings and the concession menu
from app.api.v1.public.bookings import router as bookings_router, combos_router

api_router = APIRouter()

# --- Public: bookings ---
api_router.include_router(bookings_router)

# --- Public: combos ---
api_router.include_router(combos_router)
