"""
Human-readable identifiers for bookings and cleaning tasks.

Booking references look like ``BK-12345678-A1B2``: the last eight digits of
the epoch in milliseconds plus four random uppercase alphanumerics.
"""
import logging
import secrets
import string
import time
from typing import Callable, Optional

from ..config import settings
from ..errors import ReferenceGenerationError
from ..models.booking import Booking

logger = logging.getLogger(__name__)

_ALPHABET = string.ascii_uppercase + string.digits


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _random_suffix(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


class ReferenceGenerator:
    """
    Generates booking references unique among existing bookings.

    ``exists`` answers whether a candidate reference is already taken, so the
    generator works against a session, a set, or anything else.
    """

    def __init__(
        self,
        exists: Callable[[str], bool],
        max_attempts: Optional[int] = None,
        clock: Callable[[], int] = _epoch_ms,
    ):
        self.exists = exists
        self.max_attempts = max_attempts or settings.reference_max_attempts
        self.clock = clock

    def candidate(self) -> str:
        stamp = str(self.clock())[-8:]
        return f"BK-{stamp}-{_random_suffix(4)}"

    def generate(self) -> str:
        for attempt in range(1, self.max_attempts + 1):
            reference = self.candidate()
            if not self.exists(reference):
                return reference
            logger.debug(f"Reference collision on {reference} (attempt {attempt})")

        logger.error(f"Could not generate a unique booking reference after {self.max_attempts} attempts")
        raise ReferenceGenerationError(
            "Could not generate a unique booking reference",
            {"attempts": self.max_attempts},
        )


def booking_reference_exists(db) -> Callable[[str], bool]:
    """``exists`` callable backed by the bookings table"""
    def exists(reference: str) -> bool:
        return db.query(Booking.id).filter(Booking.reference == reference).first() is not None

    return exists


def generate_cleaning_id(clock: Callable[[], int] = _epoch_ms) -> str:
    """Cleaning task id, e.g. ``CLN-1704067200000-X7K2PQ``"""
    return f"CLN-{clock()}-{_random_suffix(6)}"
