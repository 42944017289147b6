from .db import db
from .user import User
from .option import Option
from .booking import Booking, BookingOption, BookingStatus, BookingType, ACTIVE_STATUSES
from .booking_status_log import BookingStatusLog
from .resource_lock import ResourceLock
