from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation. Supplied by the identity layer and trusted as given."""
    actor_id: Optional[str]
    is_elevated: bool = False


# Used by scheduled sweeps (expiry of temporary bookings)
SYSTEM_ACTOR = Actor(actor_id=None, is_elevated=True)
