import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from app.core.exceptions import StaleStateError
from app.db.booking_store import BookingStore
from app.domain import state_machine
from app.domain.availability import is_hold_lapsed

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    processed: int = 0
    skipped: int = 0
    failed: int = 0


def expire_lapsed_holds(store: BookingStore, now: datetime) -> SweepResult:
    """
    Transition every held booking whose hold has lapsed to ``expired`` and
    release its seats.

    Each booking is written with the same status precondition as customer
    actions, so a booking confirmed a moment earlier is left alone. A failure
    on one booking is logged and the sweep moves on; it is picked up again on
    the next run. Running the sweep twice is a no-op the second time.
    """
    result = SweepResult()
    for booking_id in store.lapsed_hold_ids(now):
        try:
            record = store.get(booking_id)
            if record is None or record.deleted or not is_hold_lapsed(
                record.status, record.hold_expires_at, now
            ):
                result.skipped += 1
                continue
            store.compare_and_set(state_machine.expire(record, now), expected_status=record.status)
            result.processed += 1
        except StaleStateError:
            result.skipped += 1
        except Exception:
            result.failed += 1
            logger.exception("Failed to expire booking %s", booking_id)
    return result


def purge_expired_bookings(store: BookingStore, now: datetime, retention: timedelta) -> SweepResult:
    """
    Permanently delete bookings that have been ``expired`` for longer than
    ``retention``.
    """
    result = SweepResult()
    for booking_id in store.expired_ids_before(now - retention):
        try:
            if store.purge(booking_id):
                result.processed += 1
            else:
                result.skipped += 1
        except Exception:
            result.failed += 1
            logger.exception("Failed to purge booking %s", booking_id)
    return result
