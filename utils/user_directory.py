from models import db
from models.user import User


class UserDirectory:
    """Read-only lookups against the user directory."""

    def user_exists(self, user_id) -> bool:
        if not user_id:
            return False
        return db.session.get(User, str(user_id)) is not None

    def user_display_info(self, user_id):
        if not user_id:
            return None
        user = db.session.get(User, str(user_id))
        if user is None:
            return None
        return {"name": user.full_name, "email": user.email, "phone": user.phone}
