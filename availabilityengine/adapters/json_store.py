"""
Booking store backed by a JSON mock-data file.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from ..domain.exceptions import InvalidInterval, StoreUnavailable
from ..domain.models import BookingInterval, coerce_date
from .memory_store import InMemoryBookingStore

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_bookings.json"


class JsonBookingStore(InMemoryBookingStore):
    """
    Loads bookings from a JSON file for testing without the booking database.

    File format: a list of booking records as returned by the booking API::

        [{"id": 1, "date": "2024-02-15", "startTime": "14:00",
          "endTime": "18:00", "services": ["DJ"], "status": "confirmed"}]

    Cancelled bookings are skipped; any other record that cannot be read
    raises ``StoreUnavailable``. Unknown service names are kept out of
    ``services`` without dropping the booking.
    """

    def __init__(self, data_file: Optional[Path] = None):
        super().__init__()
        self.data_file = data_file or DEFAULT_DATA_FILE
        self._load()

    def _load(self) -> None:
        """Load booking records from the data file."""
        try:
            with open(self.data_file, "r", encoding="utf-8") as f:
                records = json.load(f)
        except FileNotFoundError as exc:
            raise StoreUnavailable(f"Booking data file not found: {self.data_file}") from exc
        except json.JSONDecodeError as exc:
            raise StoreUnavailable(f"Invalid JSON in {self.data_file}: {exc}") from exc

        if not isinstance(records, list):
            raise StoreUnavailable(f"{self.data_file} must contain a list of bookings")

        loaded = 0
        for record in records:
            if not isinstance(record, dict):
                raise StoreUnavailable(f"{self.data_file}: booking record must be an object, got {record!r}")
            if str(record.get("status", "")).lower() == "cancelled":
                continue

            try:
                date = coerce_date(record["date"])
                interval = BookingInterval.from_record(record)
            except KeyError as exc:
                raise StoreUnavailable(f"{self.data_file}: booking record without date: {record!r}") from exc
            except InvalidInterval as exc:
                raise StoreUnavailable(f"{self.data_file}: invalid booking record {record!r}: {exc}") from exc

            self.add(date, interval)
            loaded += 1

        logger.info("Loaded %d bookings from %s", loaded, self.data_file)
