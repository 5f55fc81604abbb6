# models/ledger.py

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Text, text

from booking_core.models.base import Base
from booking_core.models.enums import LedgerEntryKind, LedgerEntryStatus
from booking_core.models.types import Money, StringEnum, UTCDateTime
from booking_core.utils.datetime import utc_now

_SINGLE_OPEN_KIND = text(
    "kind IN ('owner_accepted', 'guest_payment') AND status <> 'cancelled'"
)


class LedgerEntry(Base):
    """
    One DR or CR posting against a booking.

    Exactly one of ``dr_amount`` / ``cr_amount`` is non-zero. Completed
    entries are never edited; corrections are new entries.
    """

    __tablename__ = "ledger_entries"
    __table_args__ = (
        Index(
            "uq_ledger_entries_open_kind",
            "booking_id",
            "kind",
            unique=True,
            postgresql_where=_SINGLE_OPEN_KIND,
            sqlite_where=_SINGLE_OPEN_KIND,
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(
        Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind = Column(StringEnum(LedgerEntryKind), nullable=False)
    dr_amount = Column(Money(), nullable=False, default=0)
    cr_amount = Column(Money(), nullable=False, default=0)
    status = Column(StringEnum(LedgerEntryStatus), nullable=False)
    reference = Column(String(64), nullable=False, unique=True)
    notes = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now)
