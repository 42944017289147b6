from models import db
from models.resource_lock import ResourceLock


def seed_resource_lock(key: str):
    if db.session.get(ResourceLock, key) is None:
        db.session.add(ResourceLock(key=key, version=0))
    db.session.commit()
