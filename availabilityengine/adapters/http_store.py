"""
Booking store that reads confirmed bookings from the booking REST API.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

import pendulum
import requests
from pendulum import Date, DateTime

from ..domain.exceptions import InvalidInterval, StoreUnavailable
from ..domain.models import BookingInterval, TimeSlot, coerce_date, services_from_record

logger = logging.getLogger(__name__)


class HttpBookingStore:
    """
    Client for the website's ``/api/bookings`` listing endpoint.

    The endpoint answers with::

        {
            "success": true,
            "bookings": [
                {
                    "id": 12,
                    "eventDate": "2024-02-15T00:00:00.000Z",
                    "eventStartTime": "2024-02-15T20:00:00.000Z",
                    "eventEndTime": "2024-02-16T00:00:00.000Z",
                    "servicesNeeded": ["DJ Services"],
                    "status": "CONFIRMED"
                }
            ]
        }

    Requests are blocking, so they run in a worker thread to keep the
    engine's event loop free.
    """

    BOOKINGS_PATH = "/api/bookings"
    IGNORED_STATUSES = {"cancelled", "canceled", "declined"}

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timezone: str = "America/Chicago",
        timeout: float = 5,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the booking API client.

        Args:
            base_url: Root URL of the booking website
            api_token: Optional bearer token for the admin API
            timezone: Business timezone used to read wall-clock times
            timeout: Per-request timeout in seconds
            session: Optional preconfigured requests session
        """
        self.base_url = base_url.rstrip("/")
        self.timezone = timezone
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {"Accept": "application/json"}
        if api_token:
            self.headers["Authorization"] = f"Bearer {api_token}"

    async def list_intervals_for_date(self, date: Union[str, Date]) -> List[BookingInterval]:
        """Fetch the bookings held on ``date``."""
        return await asyncio.to_thread(self._fetch, coerce_date(date))

    def _fetch(self, date: Date) -> List[BookingInterval]:
        url = f"{self.base_url}{self.BOOKINGS_PATH}"
        day = date.to_date_string()
        params = {"dateFrom": day, "dateTo": day}

        try:
            response = self.session.get(url, headers=self.headers, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise StoreUnavailable(f"Failed to fetch bookings for {day}: {e}") from e
        except ValueError as e:
            raise StoreUnavailable(f"Booking API returned invalid JSON for {day}: {e}") from e

        if not isinstance(data, dict) or not data.get("success", False):
            error = data.get("error", "unknown error") if isinstance(data, dict) else "unexpected payload"
            raise StoreUnavailable(f"Booking API rejected the request for {day}: {error}")

        intervals = self._parse_bookings(data.get("bookings", []), date)
        logger.debug("Fetched %d bookings for %s", len(intervals), day)
        return intervals

    def _parse_bookings(self, records: List[Dict[str, Any]], date: Date) -> List[BookingInterval]:
        """
        Convert API records into intervals, skipping cancelled ones.

        A live booking whose times cannot be read fails the whole fetch:
        dropping it would report its slot as free.
        """
        intervals: List[BookingInterval] = []

        for record in records:
            status = str(record.get("status", "")).lower()
            if status in self.IGNORED_STATUSES:
                continue

            try:
                intervals.append(self._parse_record(record, date))
            except (KeyError, ValueError) as e:
                raise StoreUnavailable(
                    f"Booking {record.get('id')} on {date.to_date_string()} could not be read: {e}"
                ) from e

        return intervals

    def _parse_record(self, record: Dict[str, Any], date: Date) -> BookingInterval:
        start = self._parse_datetime(record["eventStartTime"])
        end = self._parse_datetime(record["eventEndTime"])

        # Events running past midnight are clipped to the end of the day
        end_minutes = end.hour * 60 + end.minute
        if end.date() > date:
            end_minutes = 23 * 60 + 59

        slot = TimeSlot(start=start.hour * 60 + start.minute, end=end_minutes)
        return BookingInterval(slot=slot, booking_id=str(record["id"]), services=services_from_record(record))

    def _parse_datetime(self, value: str) -> DateTime:
        """Parse an ISO 8601 timestamp into the business timezone."""
        dt = pendulum.parse(value)
        if isinstance(dt, DateTime):
            return dt.in_timezone(self.timezone)
        raise InvalidInterval(f"Could not parse datetime: {value}")
