import os
from datetime import date, datetime, timedelta, timezone

# Configure the app for tests before anything under app/ is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RECLAIMER_ENABLED"] = "false"
os.environ["SERVICE_TOKEN"] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.deps import get_booking_service  # noqa: E402
from app.core.exceptions import NotFoundError  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.booking_store import BookingStore  # noqa: E402
from app.domain.booking import SeatSelection, ShowtimeKey  # noqa: E402
from app.main import app  # noqa: E402
from app.services.booking_service import BookingService  # noqa: E402
from app.services.catalog import ShowtimePricing  # noqa: E402

SEAT_PRICES = {"standard": 50000, "vip": 60000, "couple": 110000}


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeCatalog:
    def __init__(self, showtimes, prices=SEAT_PRICES):
        self.showtimes = set(showtimes)
        self.prices = dict(prices)
        self.calls = []

    def get_showtime_and_pricing(self, movie_id, cinema, showtime_date, showtime_time):
        self.calls.append((movie_id, cinema, showtime_date, showtime_time))
        key = ShowtimeKey(
            movie_id=movie_id, cinema=cinema, showtime_date=showtime_date, showtime_time=showtime_time
        )
        if key not in self.showtimes:
            raise NotFoundError("Showtime", f"{movie_id}/{cinema}/{showtime_date}/{showtime_time}")
        return ShowtimePricing(movie_name="Dune: Part Two", seat_price_by_type=self.prices, format_label="2D")


@pytest.fixture
def showtime():
    return ShowtimeKey(
        movie_id="movie-1", cinema="CGV Vincom", showtime_date=date(2026, 10, 20), showtime_time="14:00"
    )


@pytest.fixture
def other_showtime():
    return ShowtimeKey(
        movie_id="movie-1", cinema="CGV Vincom", showtime_date=date(2026, 10, 20), showtime_time="19:30"
    )


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def store(session_factory):
    return BookingStore(session_factory)


@pytest.fixture
def catalog(showtime, other_showtime):
    return FakeCatalog({showtime, other_showtime})


@pytest.fixture
def service(store, catalog, clock):
    return BookingService(store=store, catalog=catalog, clock=clock)


@pytest.fixture
def client(service):
    app.dependency_overrides[get_booking_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def standard_seats():
    def make(*numbers, seat_type="standard"):
        return [
            SeatSelection(seat_number=n, seat_type=seat_type, price=SEAT_PRICES[seat_type])
            for n in numbers
        ]
    return make
