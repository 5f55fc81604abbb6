# models/calendars.py

from sqlalchemy import Column, Integer

from booking_core.models.base import Base
from booking_core.models.types import UTCDateTime
from booking_core.utils.datetime import utc_now


class PropertyCalendar(Base):
    """
    Lock row for one property's calendar.

    Creating or accepting a booking takes ``SELECT ... FOR UPDATE`` on this row
    before the availability check, so calendar mutations of one property run
    one at a time.
    """

    __tablename__ = "property_calendars"

    property_id = Column(Integer, primary_key=True, autoincrement=False)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
