from fastapi import APIRouter
from tourbook.api.v1.routes.bookings import router as bookings_router
from tourbook.api.v1.routes.notes import router as notes_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(bookings_router)
api_router.include_router(notes_router)
