import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from app.core.config import settings
from app.db.booking_store import BookingStore
from app.db.session import SessionLocal
from app.services.booking_service import BookingService
from app.services.catalog import CatalogClient

logger = logging.getLogger(__name__)


def get_booking_store() -> BookingStore:
    return BookingStore(SessionLocal)


def get_catalog() -> CatalogClient:
    return CatalogClient()


def get_booking_service(
    store: BookingStore = Depends(get_booking_store),
    catalog: CatalogClient = Depends(get_catalog),
) -> BookingService:
    return BookingService(store=store, catalog=catalog)


def require_service_token(x_service_token: Optional[str] = Header(None)) -> None:
    """Guard for service-to-service endpoints. Bypassed when SERVICE_TOKEN is unset."""
    expected = settings.SERVICE_TOKEN
    if not expected:
        logger.warning("SERVICE_TOKEN not set; service auth is bypassed")
        return
    if x_service_token != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
