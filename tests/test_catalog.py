from datetime import date
from unittest.mock import Mock

import pytest
import requests

from app.core.exceptions import CatalogUnavailableError, NotFoundError
from app.services.catalog import CatalogClient, find_showtime

MOVIE = {
    "_id": "movie-1",
    "name": "Dune: Part Two",
    "avatar": "https://img.example.com/dune.jpg",
    "prices": {"standard": 50000, "vip": "60000", "couple": 110000},
    "showtimes": [
        {"cinema": "CGV Vincom", "date": "2026-10-20T00:00:00.000Z", "times": ["14:00", "19:30"], "format": "IMAX"},
        {"cinema": "Lotte Cinema", "date": "2026-10-21", "times": ["10:00"]},
    ],
}


def _response(status_code=200, payload=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


def _client(response=None, error=None):
    session = Mock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response
    return CatalogClient(base_url="http://catalog:5001/", service_token="tok", timeout=2.0, session=session), session


class TestGetMovie:
    def test_success_sends_service_token(self):
        client, session = _client(_response(payload={"code": "success", "data": MOVIE}))
        assert client.get_movie("movie-1") == MOVIE
        session.get.assert_called_once_with(
            "http://catalog:5001/api/catalog/client/movies/movie-1",
            headers={"X-Service-Token": "tok"},
            timeout=2.0,
        )

    def test_not_found(self):
        client, _ = _client(_response(404))
        assert client.get_movie("missing") is None

    def test_error_code(self):
        client, _ = _client(_response(payload={"code": "error", "message": "Movie not found"}))
        assert client.get_movie("missing") is None

    def test_connection_error(self):
        client, _ = _client(error=requests.ConnectionError("refused"))
        with pytest.raises(CatalogUnavailableError):
            client.get_movie("movie-1")

    def test_timeout(self):
        client, _ = _client(error=requests.Timeout("slow"))
        with pytest.raises(CatalogUnavailableError):
            client.get_movie("movie-1")

    def test_server_error(self):
        client, _ = _client(_response(502))
        with pytest.raises(CatalogUnavailableError):
            client.get_movie("movie-1")


class TestShowtimePricing:
    def test_pricing(self):
        client, _ = _client(_response(payload={"code": "success", "data": MOVIE}))
        pricing = client.get_showtime_and_pricing("movie-1", "CGV Vincom", date(2026, 10, 20), "19:30")
        assert pricing.movie_name == "Dune: Part Two"
        assert pricing.seat_price_by_type == {"standard": 50000, "vip": 60000, "couple": 110000}
        assert pricing.format_label == "IMAX"

    def test_default_format(self):
        client, _ = _client(_response(payload={"code": "success", "data": MOVIE}))
        pricing = client.get_showtime_and_pricing("movie-1", "Lotte Cinema", date(2026, 10, 21), "10:00")
        assert pricing.format_label == "2D"

    def test_unknown_movie(self):
        client, _ = _client(_response(404))
        with pytest.raises(NotFoundError) as exc:
            client.get_showtime_and_pricing("missing", "CGV Vincom", date(2026, 10, 20), "14:00")
        assert exc.value.resource == "Movie"

    def test_unknown_showtime(self):
        client, _ = _client(_response(payload={"code": "success", "data": MOVIE}))
        with pytest.raises(NotFoundError) as exc:
            client.get_showtime_and_pricing("movie-1", "CGV Vincom", date(2026, 10, 20), "21:00")
        assert exc.value.resource == "Showtime"


def test_find_showtime_matches_cinema_date_and_time():
    assert find_showtime(MOVIE, "CGV Vincom", date(2026, 10, 20), "14:00")["format"] == "IMAX"
    assert find_showtime(MOVIE, "CGV Vincom", date(2026, 10, 21), "14:00") is None
    assert find_showtime(MOVIE, "Lotte Cinema", date(2026, 10, 21), "14:00") is None
    assert find_showtime({}, "CGV Vincom", date(2026, 10, 20), "14:00") is None
