from models.db import db
from models.types import UTCDateTime, new_id, utcnow


class Option(db.Model):
    __tablename__ = "options"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)

    unit_price = db.Column(db.Integer, nullable=False)  # smallest currency unit
    unit = db.Column(db.String(20), nullable=False)     # e.g. hour, item
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(UTCDateTime(), default=utcnow, nullable=False)
    updated_at = db.Column(UTCDateTime(), default=utcnow, nullable=False)
