"""
Booking lifecycle: request, acceptance, payment, stay and cancellation.

Each operation runs in a single database transaction. The booking row is
locked before its status is checked against the transition table, so two
racing operations on one booking are applied one after the other and the
second sees the first's result. Operations that change a property's calendar
(create, accept) additionally hold the property's calendar lock while they
check availability.

Notifications are sent only after the transaction commits, and a failed
notification never undoes a transition.
"""

from __future__ import annotations

import secrets
import string
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Iterator, Optional, Protocol

import structlog
from sqlalchemy.engine import Connection, Engine

from booking_core.db.readers.bookings import get_booking, reference_exists
from booking_core.db.readers.coupons import get_coupon_by_code
from booking_core.db.writers.bookings import insert_booking, update_booking
from booking_core.db.writers.coupons import record_coupon_usage
from booking_core.db.writers.earnings import (
    create_admin_earnings,
    mark_earnings_paid,
    set_earnings_status,
)
from booking_core.errors import (
    BookingCoreError,
    DeadlineExpiredError,
    InvalidRangeError,
    InvalidTransitionError,
    NotFoundError,
    PaymentMismatchError,
)
from booking_core.metrics import booking_transitions, payment_mismatches, sweeper_cancellations
from booking_core.models.enums import (
    BookingStatus,
    EarningsStatus,
    LedgerEntryKind,
    PaymentStatus,
)
from booking_core.models.types import ZERO, money
from booking_core.services import availability, ledger, rewards
from booking_core.services.pricing import (
    PricingBreakdown,
    PropertyInfo,
    count_nights,
    price_booking,
    split_commission,
)
from booking_core.services.transitions import BookingAction, next_status
from booking_core.utils.datetime import utc_now, utc_today

logger = structlog.get_logger(__name__)

EXPIRY_REASON = "payment deadline expired"
EXPIRED_NOTICE = "Your booking {reference} was cancelled because the payment window expired."
REQUEST_EXPIRY_REASON = "owner did not respond"
REQUEST_EXPIRED_NOTICE = "Your booking request {reference} expired before the host responded."
REFERENCE_PREFIX = "KH"
_REFERENCE_ATTEMPTS = 5


class PropertyLookup(Protocol):
    def get_property(self, property_id: int) -> Optional[PropertyInfo]: ...


class Notifier(Protocol):
    def notify(self, user_id: int, message: str) -> None: ...


def generate_reference() -> str:
    """Guest-facing booking reference: ``KH`` + 6 digits + 3 letters/digits."""
    digits = "".join(secrets.choice(string.digits) for _ in range(6))
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(3))
    return f"{REFERENCE_PREFIX}{digits}{suffix}"


@contextmanager
def _track(action: str) -> Iterator[None]:
    try:
        yield
    except BookingCoreError as exc:
        booking_transitions.labels(action=action, status=exc.code).inc()
        raise
    booking_transitions.labels(action=action, status="success").inc()


class BookingService:
    """
    Booking state machine bound to a database engine and its collaborators.

    Args:
        engine: SQLAlchemy Engine used for every transaction
        properties: Source of property pricing and ownership data
        notifier: Fire-and-forget user notifications
        payment_deadline_minutes: Payment window granted on acceptance
        owner_response_minutes: How long an unanswered request holds its dates
        default_commission_rate: Commission percentage for properties without their own

    Mutating methods accept an optional ``actor_id``. When given, the actor
    must be the party allowed to perform the action; anyone else gets
    NotFoundError, so the existence of other users' bookings is not revealed.
    ``now`` may be supplied to evaluate deadlines at a fixed instant.
    """

    def __init__(
        self,
        engine: Engine,
        properties: PropertyLookup,
        notifier: Notifier,
        payment_deadline_minutes: int = 15,
        default_commission_rate: float | Decimal = 10,
        owner_response_minutes: int = 24 * 60,
    ) -> None:
        self.engine = engine
        self.properties = properties
        self.notifier = notifier
        self.payment_deadline = timedelta(minutes=payment_deadline_minutes)
        self.response_window = timedelta(minutes=owner_response_minutes)
        self.default_commission_rate = money(default_commission_rate)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _notify_safely(self, user_id: int, message: str, **context: Any) -> None:
        try:
            self.notifier.notify(user_id, message)
        except Exception:
            logger.warning("notification_failed", user_id=user_id, exc_info=True, **context)

    def _load(
        self,
        conn: Connection,
        booking_id: int,
        actor_id: Optional[int],
        allowed: tuple[str, ...],
        for_update: bool = True,
    ) -> dict[str, Any]:
        booking = get_booking(conn, booking_id, for_update=for_update)
        if booking is None:
            raise NotFoundError("Booking not found", booking_id=booking_id)
        if actor_id is not None and actor_id not in (booking[f"{role}_id"] for role in allowed):
            logger.info("booking_access_denied", booking_id=booking_id, actor_id=actor_id)
            raise NotFoundError("Booking not found or access denied", booking_id=booking_id)
        return booking

    def _request_lapsed(self, booking: dict[str, Any], now: datetime) -> bool:
        if booking["status"] != BookingStatus.PENDING or booking["accepted_at"] is not None:
            return False
        return (
            booking["created_at"] + self.response_window <= now
            or booking["check_in_date"] <= utc_today(now)
        )

    def _unique_reference(self, conn: Connection) -> str:
        for _ in range(_REFERENCE_ATTEMPTS):
            reference = generate_reference()
            if not reference_exists(conn, reference):
                return reference
        raise RuntimeError("Could not generate a unique booking reference")

    def _cancel(
        self, conn: Connection, booking: dict[str, Any], reason: str, now: datetime
    ) -> int:
        """Apply cancellation effects inside the caller's transaction. Returns points refunded."""
        booking_id = booking["id"]
        update_booking(
            conn,
            booking_id,
            status=BookingStatus.CANCELLED,
            cancelled_at=now,
            cancellation_reason=reason,
            updated_at=now,
        )
        ledger.cancel_open_entries(conn, booking_id, now=now)
        set_earnings_status(conn, booking_id, EarningsStatus.CANCELLED, now)

        refunded = 0
        if booking["points_redeemed"]:
            refunded = rewards.refund_points(conn, booking["guest_id"], booking_id, now=now)
        return refunded

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: int, actor_id: Optional[int] = None) -> dict[str, Any]:
        with self.engine.connect() as conn:
            return self._load(conn, booking_id, actor_id, ("guest", "owner"), for_update=False)

    def check_availability(
        self,
        property_id: int,
        check_in: date,
        check_out: date,
        now: Optional[datetime] = None,
    ) -> list[dict[str, Any]]:
        """
        Active bookings overlapping a prospective stay (empty when available).

        Raises:
            InvalidRangeError: If ``check_out`` is not after ``check_in``
        """
        if check_out <= check_in:
            raise InvalidRangeError("Check-out date must be after check-in date")
        with self.engine.connect() as conn:
            return availability.find_conflicts(
                conn,
                property_id,
                check_in,
                check_out,
                now or utc_now(),
                response_window=self.response_window,
            )

    def ledger_statement(self, booking_id: int, actor_id: Optional[int] = None) -> dict[str, Any]:
        """
        Ledger entries of a booking with their running balance.

        Returns:
            dict: ``entries``, current ``balance`` and ``settlement_state``
        """
        with self.engine.connect() as conn:
            self._load(conn, booking_id, actor_id, ("guest", "owner"), for_update=False)
            entries = ledger.statement(conn, booking_id)
        return {
            "booking_id": booking_id,
            "entries": entries,
            "balance": entries[-1]["balance"] if entries else ZERO,
            "settlement_state": ledger.settlement_state(entries),
        }

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def create_booking(
        self,
        guest_id: int,
        property_id: int,
        check_in: date,
        check_out: date,
        guest_count: int,
        coupon_code: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> tuple[dict[str, Any], PricingBreakdown]:
        """
        Request a stay. The new booking is ``pending`` and holds its dates until the
        owner answers or the owner response window lapses.

        Returns:
            tuple: The booking row and its pricing breakdown

        Raises:
            InvalidRangeError: Bad dates, guest count or stay length
            NotFoundError: Unknown property or coupon code
            ConflictError: The dates overlap an active booking
        """
        now = now or utc_now()
        with _track("create"):
            if check_out <= check_in:
                raise InvalidRangeError("Check-out date must be after check-in date")
            if check_in < utc_today(now):
                raise InvalidRangeError("Check-in date cannot be in the past")
            if guest_count < 1:
                raise InvalidRangeError("At least one guest is required")

            prop = self.properties.get_property(property_id)
            if prop is None:
                raise NotFoundError("Property not found", property_id=property_id)
            if prop.owner_id == guest_id:
                raise InvalidRangeError("You cannot book your own property")
            if guest_count > prop.max_guests:
                raise InvalidRangeError(f"Maximum {prop.max_guests} guests allowed")

            nights = count_nights(check_in, check_out)
            if nights < prop.minimum_stay:
                raise InvalidRangeError(f"Minimum stay is {prop.minimum_stay} nights")

            with self.engine.begin() as conn:
                availability.lock_property_calendar(conn, property_id)
                availability.assert_available(
                    conn,
                    property_id,
                    check_in,
                    check_out,
                    now,
                    response_window=self.response_window,
                )

                coupon = None
                if coupon_code:
                    coupon = get_coupon_by_code(conn, coupon_code)
                    if coupon is None:
                        raise NotFoundError("Coupon not found", coupon_code=coupon_code)

                pricing = price_booking(prop, nights, guest_count, coupon, today=utc_today(now))
                rate = self.default_commission_rate
                if prop.commission_rate is not None:
                    rate = money(prop.commission_rate)
                commission, owner_earnings = split_commission(pricing.final_total, rate)

                booking_id = insert_booking(
                    conn,
                    {
                        "reference": self._unique_reference(conn),
                        "property_id": property_id,
                        "guest_id": guest_id,
                        "owner_id": prop.owner_id,
                        "check_in_date": check_in,
                        "check_out_date": check_out,
                        "guest_count": guest_count,
                        "nights": nights,
                        "status": BookingStatus.PENDING,
                        "payment_status": PaymentStatus.UNPAID,
                        "subtotal": pricing.subtotal,
                        "service_fee": pricing.service_fee,
                        "tax_amount": pricing.tax_amount,
                        "discount_amount": pricing.discount_amount,
                        "total_amount": pricing.final_total,
                        "coupon_code": pricing.coupon_code,
                        "coupon_id": pricing.coupon_id,
                        "commission_rate": rate,
                        "commission_amount": commission,
                        "owner_earnings": owner_earnings,
                        "points_redeemed": 0,
                        "points_discount": ZERO,
                        "created_at": now,
                    },
                )
                booking = get_booking(conn, booking_id)

        logger.info(
            "booking_created",
            booking_id=booking_id,
            reference=booking["reference"],
            property_id=property_id,
            guest_id=guest_id,
            total_amount=str(pricing.final_total),
        )
        self._notify_safely(
            prop.owner_id,
            f"New booking request {booking['reference']} for {check_in} to {check_out}",
            booking_id=booking_id,
        )
        return booking, pricing

    def accept_booking(
        self, booking_id: int, actor_id: Optional[int] = None, now: Optional[datetime] = None
    ) -> dict[str, Any]:
        """
        Owner accepts a pending request and opens the payment window.

        The availability check is repeated under the calendar lock, ignoring
        this booking, so two overlapping requests can never both be accepted.
        A request whose owner response window has lapsed is cancelled instead,
        that cancellation is committed, and DeadlineExpiredError is raised.
        """
        now = now or utc_now()
        lapsed = False
        with _track("accept"):
            with self.engine.begin() as conn:
                booking = self._load(conn, booking_id, actor_id, ("owner",))
                target = next_status(booking["status"], BookingAction.ACCEPT)

                if self._request_lapsed(booking, now):
                    self._cancel(conn, booking, REQUEST_EXPIRY_REASON, now)
                    lapsed = True
                else:
                    booking = self._open_payment_window(conn, booking, target, now)

            if lapsed:
                logger.info("accept_after_response_window", booking_id=booking_id)
                self._notify_safely(
                    booking["guest_id"],
                    REQUEST_EXPIRED_NOTICE.format(reference=booking["reference"]),
                    booking_id=booking_id,
                )
                raise DeadlineExpiredError(
                    "Response window expired; the booking request has been cancelled",
                    booking_id=booking_id,
                )

        logger.info(
            "booking_accepted",
            booking_id=booking_id,
            payment_deadline=booking["payment_deadline"].isoformat(),
        )
        self._notify_safely(
            booking["guest_id"],
            f"Your booking {booking['reference']} was accepted. Please complete payment within "
            f"{int(self.payment_deadline.total_seconds() // 60)} minutes.",
            booking_id=booking_id,
        )
        return booking

    def _open_payment_window(
        self, conn: Connection, booking: dict[str, Any], target: BookingStatus, now: datetime
    ) -> dict[str, Any]:
        booking_id = booking["id"]
        availability.lock_property_calendar(conn, booking["property_id"])
        availability.assert_available(
            conn,
            booking["property_id"],
            booking["check_in_date"],
            booking["check_out_date"],
            now,
            exclude_booking_id=booking_id,
            stage="accept",
            response_window=self.response_window,
        )

        update_booking(
            conn,
            booking_id,
            status=target,
            accepted_at=now,
            payment_deadline=now + self.payment_deadline,
            updated_at=now,
        )
        ledger.post_debit(
            conn,
            booking_id,
            booking["total_amount"],
            reference=f"{booking['reference']}-DR",
            notes="Owner accepted booking",
            now=now,
        )
        create_admin_earnings(conn, booking, now)
        if booking["coupon_id"] is not None:
            record_coupon_usage(
                conn,
                booking["coupon_id"],
                booking["guest_id"],
                booking_id,
                booking["discount_amount"],
                now,
            )
        return get_booking(conn, booking_id)

    def record_payment(
        self,
        booking_id: int,
        method: str,
        points_to_redeem: int = 0,
        amount: Optional[Decimal] = None,
        actor_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """
        Guest pays an accepted booking, optionally redeeming loyalty points.

        The deadline is checked in the same transaction that posts the credit.
        A late payment cancels the booking exactly as the sweeper would, commits
        that cancellation, and then raises DeadlineExpiredError.

        Args:
            booking_id: Booking being paid
            method: Payment method label (e.g. ``bkash``, ``card``)
            points_to_redeem: Loyalty points to spend on this booking
            amount: Amount charged by the processor; must equal the amount due
                after the points discount when given
            actor_id: Paying user; must be the booking's guest
            now: Time the payment is evaluated at

        Raises:
            PaymentMismatchError: Already paid, or ``amount`` differs from the amount due
            DeadlineExpiredError: The payment window has passed
            InvalidTransitionError: The booking is not awaiting payment
            InsufficientPointsError: The redemption was rejected
        """
        now = now or utc_now()
        expired = False
        with _track("pay"):
            with self.engine.begin() as conn:
                booking = self._load(conn, booking_id, actor_id, ("guest",))

                if booking["payment_status"] != PaymentStatus.UNPAID:
                    payment_mismatches.inc()
                    logger.error(
                        "payment_consistency_alarm",
                        booking_id=booking_id,
                        payment_status=booking["payment_status"].value,
                        status=booking["status"].value,
                        amount=str(amount) if amount is not None else None,
                    )
                    raise PaymentMismatchError("Booking is already paid", booking_id=booking_id)

                if (
                    booking["status"] == BookingStatus.CANCELLED
                    and booking["cancellation_reason"] == EXPIRY_REASON
                ):
                    raise DeadlineExpiredError(booking_id=booking_id)

                target = next_status(booking["status"], BookingAction.PAY)

                deadline = booking["payment_deadline"]
                if deadline is None or deadline <= now:
                    self._cancel(conn, booking, EXPIRY_REASON, now)
                    expired = True
                else:
                    booking = self._settle(
                        conn, booking, target, method, points_to_redeem, amount, now
                    )

            if expired:
                logger.info("payment_after_deadline", booking_id=booking_id)
                self._notify_safely(
                    booking["guest_id"],
                    EXPIRED_NOTICE.format(reference=booking["reference"]),
                    booking_id=booking_id,
                )
                raise DeadlineExpiredError(booking_id=booking_id)

        logger.info(
            "booking_paid",
            booking_id=booking_id,
            method=method,
            amount=str(booking["total_amount"]),
            points_redeemed=booking["points_redeemed"],
        )
        self._notify_safely(
            booking["owner_id"],
            f"Booking {booking['reference']} has been paid and is confirmed.",
            booking_id=booking_id,
        )
        return booking

    def _settle(
        self,
        conn: Connection,
        booking: dict[str, Any],
        target: BookingStatus,
        method: str,
        points_to_redeem: int,
        amount: Optional[Decimal],
        now: datetime,
    ) -> dict[str, Any]:
        booking_id = booking["id"]
        due = money(booking["total_amount"])
        discount = ZERO

        if points_to_redeem > 0:
            discount = rewards.redeem_points(
                conn, booking["guest_id"], points_to_redeem, booking_id, booking_amount=due, now=now
            )
            due = money(due - discount)

        if amount is not None and money(amount) != due:
            payment_mismatches.inc()
            logger.error(
                "payment_amount_mismatch",
                booking_id=booking_id,
                amount=str(money(amount)),
                amount_due=str(due),
            )
            raise PaymentMismatchError(
                "Payment amount does not match the amount due",
                booking_id=booking_id,
                amount=str(amount),
                amount_due=str(due),
            )

        reference = booking["reference"]
        if discount > ZERO:
            ledger.post_credit(
                conn,
                booking_id,
                discount,
                reference=f"{reference}-PTS",
                kind=LedgerEntryKind.POINTS_DISCOUNT,
                notes=f"{points_to_redeem} loyalty points redeemed",
                now=now,
            )
        ledger.post_credit(
            conn,
            booking_id,
            due,
            reference=f"{reference}-CR",
            kind=LedgerEntryKind.GUEST_PAYMENT,
            notes=f"Guest payment via {method}",
            now=now,
        )
        ledger.complete_debits(conn, booking_id, now=now)

        update_booking(
            conn,
            booking_id,
            status=target,
            payment_status=PaymentStatus.PAID,
            payment_method=method,
            paid_at=now,
            total_amount=due,
            points_redeemed=points_to_redeem if discount > ZERO else 0,
            points_discount=discount,
            updated_at=now,
        )
        mark_earnings_paid(conn, booking_id, now)
        rewards.award_points(conn, booking["guest_id"], due, booking_id, now=now)
        return get_booking(conn, booking_id)

    def check_in(
        self, booking_id: int, actor_id: Optional[int] = None, now: Optional[datetime] = None
    ) -> dict[str, Any]:
        """Owner marks the guest as arrived. Only paid, confirmed bookings can check in."""
        now = now or utc_now()
        with _track("check_in"):
            with self.engine.begin() as conn:
                booking = self._load(conn, booking_id, actor_id, ("owner",))
                target = next_status(booking["status"], BookingAction.CHECK_IN)
                if booking["payment_status"] != PaymentStatus.PAID:
                    raise InvalidTransitionError(
                        booking["status"].value,
                        BookingAction.CHECK_IN.value,
                        "Booking must be paid before check-in",
                    )
                update_booking(conn, booking_id, status=target, updated_at=now)
                booking = get_booking(conn, booking_id)

        logger.info("booking_checked_in", booking_id=booking_id)
        return booking

    def check_out(
        self, booking_id: int, actor_id: Optional[int] = None, now: Optional[datetime] = None
    ) -> dict[str, Any]:
        now = now or utc_now()
        with _track("check_out"):
            with self.engine.begin() as conn:
                booking = self._load(conn, booking_id, actor_id, ("owner",))
                target = next_status(booking["status"], BookingAction.CHECK_OUT)
                update_booking(conn, booking_id, status=target, updated_at=now)
                booking = get_booking(conn, booking_id)

        logger.info("booking_checked_out", booking_id=booking_id)
        self._notify_safely(
            booking["guest_id"],
            f"Thanks for staying! Booking {booking['reference']} is checked out.",
            booking_id=booking_id,
        )
        return booking

    def cancel_booking(
        self,
        booking_id: int,
        reason: Optional[str] = None,
        actor_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """
        Guest or owner cancels a booking before its check-in date.

        Cancelling an already-cancelled booking returns it unchanged.

        Raises:
            InvalidTransitionError: The stay has started or ended, or the
                check-in date is today or earlier
        """
        now = now or utc_now()
        with _track("cancel"):
            with self.engine.begin() as conn:
                booking = self._load(conn, booking_id, actor_id, ("guest", "owner"))
                if booking["status"] == BookingStatus.CANCELLED:
                    logger.info("booking_already_cancelled", booking_id=booking_id)
                    return booking

                next_status(booking["status"], BookingAction.CANCEL)
                if booking["check_in_date"] <= utc_today(now):
                    raise InvalidTransitionError(
                        booking["status"].value,
                        BookingAction.CANCEL.value,
                        "Bookings cannot be cancelled on or after the check-in date",
                    )

                refunded = self._cancel(conn, booking, reason or "Cancelled by user", now)
                booking = get_booking(conn, booking_id)

        logger.info(
            "booking_cancelled",
            booking_id=booking_id,
            actor_id=actor_id,
            points_refunded=refunded,
        )
        counterparty = booking["guest_id"]
        if actor_id == booking["guest_id"]:
            counterparty = booking["owner_id"]
        self._notify_safely(
            counterparty,
            f"Booking {booking['reference']} has been cancelled.",
            booking_id=booking_id,
        )
        return booking

    def expire_booking(
        self, booking_id: int, now: Optional[datetime] = None
    ) -> Optional[dict[str, Any]]:
        """
        Cancel an accepted booking whose payment window has passed.

        Everything is re-checked under the row lock; a booking that was paid,
        cancelled or otherwise moved on since it was selected is left alone.

        Returns:
            The cancelled booking, or None if nothing was done
        """
        now = now or utc_now()
        with _track("expire"):
            with self.engine.begin() as conn:
                booking = get_booking(conn, booking_id, for_update=True)
                if booking is None:
                    return None

                status = booking["status"]
                awaiting_payment = status == BookingStatus.ACCEPTED or (
                    status == BookingStatus.PENDING and booking["accepted_at"] is not None
                )
                deadline = booking["payment_deadline"]
                if not awaiting_payment or deadline is None or deadline >= now:
                    return None
                if ledger.has_completed_payment(conn, booking_id):
                    return None

                self._cancel(conn, booking, EXPIRY_REASON, now)
                booking = get_booking(conn, booking_id)

        sweeper_cancellations.inc()
        logger.info("booking_expired", booking_id=booking_id, payment_deadline=deadline.isoformat())
        self._notify_safely(
            booking["guest_id"],
            EXPIRED_NOTICE.format(reference=booking["reference"]),
            booking_id=booking_id,
        )
        return booking

    def expire_request(
        self, booking_id: int, now: Optional[datetime] = None
    ) -> Optional[dict[str, Any]]:
        """
        Cancel a request the owner never answered.

        Like :meth:`expire_booking` this is not bound by the check-in date,
        so requests whose stay has already begun still reach a final state.

        Returns:
            The cancelled booking, or None if nothing was done
        """
        now = now or utc_now()
        with _track("expire_request"):
            with self.engine.begin() as conn:
                booking = get_booking(conn, booking_id, for_update=True)
                if booking is None or not self._request_lapsed(booking, now):
                    return None

                self._cancel(conn, booking, REQUEST_EXPIRY_REASON, now)
                booking = get_booking(conn, booking_id)

        sweeper_cancellations.inc()
        logger.info("booking_request_expired", booking_id=booking_id)
        self._notify_safely(
            booking["guest_id"],
            REQUEST_EXPIRED_NOTICE.format(reference=booking["reference"]),
            booking_id=booking_id,
        )
        return booking

    def record_refund(
        self,
        booking_id: int,
        amount: Decimal,
        reference: str,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """
        Record a refund reported by the payment processor for a cancelled, paid booking.

        A refund whose processor reference was already recorded is ignored.
        """
        now = now or utc_now()
        entry_reference = f"RF-{reference}"
        with _track("refund"):
            with self.engine.begin() as conn:
                booking = self._load(conn, booking_id, None, ())
                entries = ledger.statement(conn, booking_id)
                if any(e["reference"] == entry_reference for e in entries):
                    logger.info(
                        "refund_already_recorded", booking_id=booking_id, reference=reference
                    )
                    return booking

                if (
                    booking["status"] != BookingStatus.CANCELLED
                    or booking["payment_status"] == PaymentStatus.UNPAID
                ):
                    raise InvalidTransitionError(
                        booking["status"].value,
                        "refund",
                        "Only cancelled, paid bookings can be refunded",
                    )

                ledger.post_refund(
                    conn, booking_id, amount, entry_reference, notes="Processor refund", now=now
                )
                update_booking(
                    conn, booking_id, payment_status=PaymentStatus.REFUNDED, updated_at=now
                )
                set_earnings_status(conn, booking_id, EarningsStatus.REFUNDED, now)
                booking = get_booking(conn, booking_id)

        logger.info("booking_refunded", booking_id=booking_id, amount=str(money(amount)))
        self._notify_safely(
            booking["guest_id"],
            f"A refund of {money(amount)} BDT for booking {booking['reference']} has been issued.",
            booking_id=booking_id,
        )
        return booking
