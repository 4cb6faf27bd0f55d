from datetime import datetime, timedelta
from typing import Optional

from flatmates.config import OTP_TTL_SECONDS
from flatmates.db import OTPS
from flatmates.models.base import utcnow
from flatmates.models.otp import OTP
from flatmates.repositories.base import MongoRepository


class OtpRepository(MongoRepository):
    """One-time codes. The TTL index purges them; lookups also check the age
    themselves because the server only sweeps expired documents once a minute."""

    collection_name = OTPS
    model = OTP
    not_found_msg = "OTP not found"

    def issue(self, email: str, otp: str) -> dict:
        """Store a fresh code for the email, discarding any earlier ones."""
        email = email.strip().lower()
        with self.errors():
            self.collection.delete_many({"email": email})
        return self.create({"email": email, "otp": otp})

    def find_valid(self, email: str, otp: str, now: Optional[datetime] = None) -> Optional[dict]:
        cutoff = (now or utcnow()) - timedelta(seconds=OTP_TTL_SECONDS)
        return self.find_one({
            "email": email.strip().lower(),
            "otp": otp,
            "createdAt": {"$gt": cutoff},
        })
