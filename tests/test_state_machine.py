from datetime import timedelta

import pytest

from app.core.constants import BookingStatus, PaymentStatus, DEFAULT_COMBOS
from app.core.exceptions import ExpiredError, InvalidStateError, ValidationError
from app.domain import state_machine
from app.domain.booking import CustomerInfo, SeatSelection

CUSTOMER = CustomerInfo(full_name="Nguyen Van A", phone="0987654321", email="a@example.com")


@pytest.fixture
def held(showtime, clock, standard_seats):
    return state_machine.create("BK-TEST0001", showtime, standard_seats("A1", "A2"), clock())


class TestCreate:
    def test_hold_expires_ten_minutes_after_creation(self, held, clock):
        assert held.status == BookingStatus.held
        assert held.is_temporary is True
        assert held.created_at == clock()
        assert held.hold_expires_at == held.created_at + timedelta(minutes=10)

    def test_totals_from_seat_prices(self, held):
        assert held.seat_subtotal == 100000
        assert held.extras_total == 0
        assert held.discount == 0
        assert held.total == 100000

    def test_empty_seats_rejected(self, showtime, clock):
        with pytest.raises(ValidationError) as exc:
            state_machine.create("BK-TEST0001", showtime, [], clock())
        assert exc.value.fields == ["seats"]

    def test_duplicate_seat_numbers_rejected(self, showtime, clock, standard_seats):
        with pytest.raises(ValidationError) as exc:
            state_machine.create("BK-TEST0001", showtime, standard_seats("A1", "A1"), clock())
        assert exc.value.seat_errors == [{"seat_number": "A1", "reason": "duplicate seat number"}]

    @pytest.mark.parametrize("price", [0, -50000])
    def test_non_positive_price_rejected(self, showtime, clock, price):
        seats = [SeatSelection(seat_number="B3", price=price)]
        with pytest.raises(ValidationError) as exc:
            state_machine.create("BK-TEST0001", showtime, seats, clock())
        assert exc.value.seat_errors[0]["seat_number"] == "B3"

    def test_optional_customer_stored_while_held(self, showtime, clock, standard_seats):
        record = state_machine.create(
            "BK-TEST0001", showtime, standard_seats("A1"), clock(),
            customer=CustomerInfo(full_name="Tran Thi B", phone="090 123 4567"),
        )
        assert record.full_name == "Tran Thi B"
        assert record.phone == "0901234567"

    def test_invalid_customer_phone_rejected(self, showtime, clock, standard_seats):
        with pytest.raises(ValidationError):
            state_machine.create(
                "BK-TEST0001", showtime, standard_seats("A1"), clock(),
                customer=CustomerInfo(phone="12345"),
            )


class TestAttachExtras:
    def test_recomputes_totals(self, held, clock):
        record = state_machine.attach_extras(held, {"popcorn": {"quantity": 2}}, DEFAULT_COMBOS, clock())
        assert record.extras["popcorn"].line_total == 90000
        assert record.extras_total == 90000
        assert record.total == 190000

    def test_idempotent(self, held, clock):
        request = {"popcorn": {"quantity": 2}, "coke": {"quantity": 1}}
        once = state_machine.attach_extras(held, request, DEFAULT_COMBOS, clock())
        twice = state_machine.attach_extras(once, request, DEFAULT_COMBOS, clock())
        assert twice.extras_total == once.extras_total == 125000
        assert twice.total == once.total == 225000

    def test_replaces_previous_selection(self, held, clock):
        first = state_machine.attach_extras(held, {"popcorn": {"quantity": 2}}, DEFAULT_COMBOS, clock())
        second = state_machine.attach_extras(first, {"water": {"quantity": 1}}, DEFAULT_COMBOS, clock())
        assert set(second.extras) == {"water"}
        assert second.total == 115000

    def test_zero_quantity_dropped(self, held, clock):
        record = state_machine.attach_extras(held, {"popcorn": {"quantity": 0}}, DEFAULT_COMBOS, clock())
        assert record.extras == {}
        assert record.total == held.seat_subtotal

    def test_client_price_must_match_menu(self, held, clock):
        with pytest.raises(ValidationError) as exc:
            state_machine.attach_extras(
                held, {"popcorn": {"quantity": 1, "price": 1000}}, DEFAULT_COMBOS, clock()
            )
        assert exc.value.fields == ["extras.popcorn.price"]

    def test_unknown_combo_rejected(self, held, clock):
        with pytest.raises(ValidationError):
            state_machine.attach_extras(held, {"nachos": {"quantity": 1}}, DEFAULT_COMBOS, clock())

    def test_allowed_after_confirm(self, held, clock):
        confirmed = state_machine.confirm(held, CUSTOMER, clock())
        record = state_machine.attach_extras(confirmed, {"popcorn": {"quantity": 1}}, DEFAULT_COMBOS, clock())
        assert record.total == 145000

    def test_rejected_when_completed(self, held, clock):
        paid = state_machine.mark_paid(state_machine.confirm(held, CUSTOMER, clock()), {}, clock())
        with pytest.raises(InvalidStateError):
            state_machine.attach_extras(paid, {"popcorn": {"quantity": 1}}, DEFAULT_COMBOS, clock())

    def test_lapsed_hold_expires(self, held, clock):
        clock.advance(minutes=11)
        with pytest.raises(ExpiredError) as exc:
            state_machine.attach_extras(held, {"popcorn": {"quantity": 1}}, DEFAULT_COMBOS, clock())
        assert exc.value.expired_record.status == BookingStatus.expired


class TestConfirm:
    def test_moves_to_pending_payment(self, held, clock):
        record = state_machine.confirm(held, CUSTOMER, clock())
        assert record.status == BookingStatus.confirmed_pending_payment
        assert record.hold_expires_at is None
        assert record.is_temporary is False
        assert record.full_name == "Nguyen Van A"
        assert record.phone == "0987654321"

    @pytest.mark.parametrize("phone", ["0987654321", "84987654321", "+84 987 654 321", "0351234567"])
    def test_accepts_mobile_numbers(self, held, clock, phone):
        customer = CustomerInfo(full_name="Nguyen Van A", phone=phone)
        assert state_machine.confirm(held, customer, clock()).status == BookingStatus.confirmed_pending_payment

    @pytest.mark.parametrize("phone", ["0187654321", "098765432", "09876543210", "abc0987654321"])
    def test_rejects_bad_phone(self, held, clock, phone):
        with pytest.raises(ValidationError) as exc:
            state_machine.confirm(held, CustomerInfo(full_name="Nguyen Van A", phone=phone), clock())
        assert exc.value.fields == ["phone"]

    def test_requires_full_name(self, held, clock):
        with pytest.raises(ValidationError) as exc:
            state_machine.confirm(held, CustomerInfo(full_name="  ", phone="0987654321"), clock())
        assert exc.value.fields == ["full_name"]

    def test_lapsed_hold_raises_expired_with_expired_record(self, held, clock):
        clock.advance(minutes=10, seconds=1)
        with pytest.raises(ExpiredError) as exc:
            state_machine.confirm(held, CUSTOMER, clock())
        expired = exc.value.expired_record
        assert expired.status == BookingStatus.expired
        assert expired.deleted is True
        assert expired.deleted_at == clock()

    def test_already_expired_raises_expired(self, held, clock):
        clock.advance(minutes=11)
        expired = state_machine.expire(held, clock())
        with pytest.raises(ExpiredError) as exc:
            state_machine.confirm(expired, CUSTOMER, clock())
        assert exc.value.expired_record is None

    def test_confirm_twice_rejected(self, held, clock):
        confirmed = state_machine.confirm(held, CUSTOMER, clock())
        with pytest.raises(InvalidStateError) as exc:
            state_machine.confirm(confirmed, CUSTOMER, clock())
        assert exc.value.status == "confirmed_pending_payment"


class TestMarkPaid:
    def test_completes_confirmed_booking(self, held, clock):
        confirmed = state_machine.confirm(held, CUSTOMER, clock())
        clock.advance(minutes=3)
        paid = state_machine.mark_paid(confirmed, {"payment_id": "pay_1", "provider": "momo"}, clock())
        assert paid.status == BookingStatus.completed
        assert paid.payment_status == PaymentStatus.paid
        assert paid.completed_at == clock()
        assert paid.payment_reference == {"payment_id": "pay_1", "provider": "momo"}

    def test_from_live_hold_with_customer_details(self, showtime, clock, standard_seats):
        record = state_machine.create(
            "BK-TEST0001", showtime, standard_seats("A1"), clock(), customer=CUSTOMER
        )
        paid = state_machine.mark_paid(record, {}, clock())
        assert paid.status == BookingStatus.completed
        assert paid.hold_expires_at is None
        assert paid.is_temporary is False

    def test_from_hold_without_customer_rejected(self, held, clock):
        with pytest.raises(InvalidStateError):
            state_machine.mark_paid(held, {}, clock())

    def test_completed_is_terminal(self, held, clock):
        paid = state_machine.mark_paid(state_machine.confirm(held, CUSTOMER, clock()), {}, clock())
        with pytest.raises(InvalidStateError):
            state_machine.mark_paid(paid, {}, clock())


class TestCancel:
    def test_cancel_held(self, held, clock):
        record = state_machine.cancel(held, clock())
        assert record.status == BookingStatus.cancelled
        assert record.deleted is True
        assert record.deleted_at == clock()
        assert record.hold_expires_at is None

    def test_cancel_confirmed(self, held, clock):
        record = state_machine.cancel(state_machine.confirm(held, CUSTOMER, clock()), clock())
        assert record.status == BookingStatus.cancelled

    def test_terminal_states_rejected(self, held, clock):
        cancelled = state_machine.cancel(held, clock())
        with pytest.raises(InvalidStateError):
            state_machine.cancel(cancelled, clock())
        paid = state_machine.mark_paid(state_machine.confirm(held, CUSTOMER, clock()), {}, clock())
        with pytest.raises(InvalidStateError):
            state_machine.cancel(paid, clock())


class TestExpire:
    def test_expire_lapsed_hold(self, held, clock):
        clock.advance(minutes=11)
        record = state_machine.expire(held, clock())
        assert record.status == BookingStatus.expired
        assert record.deleted is True
        assert record.is_temporary is False
        assert record.hold_expires_at is None

    def test_live_hold_cannot_expire(self, held, clock):
        clock.advance(minutes=9)
        with pytest.raises(InvalidStateError):
            state_machine.expire(held, clock())

    def test_confirmed_cannot_expire(self, held, clock):
        confirmed = state_machine.confirm(held, CUSTOMER, clock())
        clock.advance(hours=1)
        with pytest.raises(InvalidStateError):
            state_machine.expire(confirmed, clock())

    def test_transitions_do_not_mutate_input(self, held, clock):
        clock.advance(minutes=11)
        state_machine.expire(held, clock())
        assert held.status == BookingStatus.held
        assert held.deleted is False
