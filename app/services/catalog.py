"""Client for the movie catalog service (showtimes and the seat price table)."""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Optional

import requests

from app.core.config import settings
from app.core.exceptions import CatalogUnavailableError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShowtimePricing:
    movie_name: Optional[str]
    seat_price_by_type: Dict[str, int] = field(default_factory=dict)
    format_label: str = "2D"
    movie_avatar: Optional[str] = None


def _parse_date(value) -> Optional[date]:
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except ValueError:
        return None


def find_showtime(movie: dict, cinema: str, showtime_date: date, showtime_time: str) -> Optional[dict]:
    """Return the catalog showtime entry that screens at (cinema, date, time), if any."""
    for entry in movie.get("showtimes") or []:
        if (
            entry.get("cinema") == cinema
            and _parse_date(entry.get("date")) == showtime_date
            and showtime_time in (entry.get("times") or [])
        ):
            return entry
    return None


class CatalogClient:
    def __init__(
        self,
        base_url: str = settings.CATALOG_SERVICE_URL,
        service_token: str = settings.SERVICE_TOKEN,
        timeout: float = settings.CATALOG_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.service_token = service_token
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_movie(self, movie_id: str) -> Optional[dict]:
        url = f"{self.base_url}/api/catalog/client/movies/{movie_id}"
        try:
            response = self.session.get(
                url,
                headers={"X-Service-Token": self.service_token},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Catalog request for movie %s failed: %s", movie_id, exc)
            raise CatalogUnavailableError(movie_id) from exc

        if response.status_code == 404:
            return None
        if response.status_code >= 500:
            logger.warning("Catalog returned %d for movie %s", response.status_code, movie_id)
            raise CatalogUnavailableError(movie_id)

        payload = response.json()
        if payload.get("code") != "success":
            logger.info("Movie %s not found in catalog", movie_id)
            return None
        return payload.get("data")

    def get_showtime_and_pricing(
        self, movie_id: str, cinema: str, showtime_date: date, showtime_time: str
    ) -> ShowtimePricing:
        movie = self.get_movie(movie_id)
        if not movie:
            raise NotFoundError("Movie", movie_id)

        showtime = find_showtime(movie, cinema, showtime_date, showtime_time)
        if showtime is None:
            raise NotFoundError("Showtime", f"{movie_id}/{cinema}/{showtime_date}/{showtime_time}")

        return ShowtimePricing(
            movie_name=movie.get("name"),
            seat_price_by_type={k: int(v) for k, v in (movie.get("prices") or {}).items()},
            format_label=showtime.get("format") or "2D",
            movie_avatar=movie.get("avatar"),
        )
