"""
Client profile store.

Keeps the last contact details a client booked with, so the next booking
can be pre-filled. Not needed for ledger correctness: callers treat
failures here as non-fatal.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..models import Profiles

logger = logging.getLogger(__name__)


class ProfileStore:
    def __init__(self, db: Session):
        self.db = db

    def get_profile(self, client_id: str) -> Profiles | None:
        return self.db.get(Profiles, client_id)

    def save_profile(
        self,
        client_id: str,
        full_name: str | None = None,
        phone: str | None = None,
        email: str | None = None,
    ) -> Profiles:
        """Upsert; fields passed as None keep their stored value."""
        profile = self.db.get(Profiles, client_id)
        if profile is None:
            profile = Profiles(client_id=client_id)
            self.db.add(profile)

        for field, value in (("full_name", full_name), ("phone", phone), ("email", email)):
            if value:
                setattr(profile, field, value)
        profile.updated_at = datetime.now()

        self.db.commit()
        return profile
