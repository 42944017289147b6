from models.db import db
from models.types import UTCDateTime, utcnow


class ResourceLock(db.Model):
    """
    One row per bookable resource.
    Write paths bump `version` first thing in their transaction, which
    serialises them until commit.
    """

    __tablename__ = "resource_locks"

    key = db.Column(db.String(40), primary_key=True)
    version = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(UTCDateTime(), default=utcnow, nullable=False)
