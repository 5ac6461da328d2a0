"""
Commission rate resolution.

A rate is resolved for a (service type, category, crew member) triple by
walking a fallback chain, first match wins:

1. active rate whose service type equals the booking's service type
2. active rate whose service type equals the booking's category
3. the crew member's individual commission rate
4. zero

A missing rate never raises; payroll degrades to zero commission instead.
"""
import logging
import threading
import time
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterable, Optional

from flask import current_app

from crewpay.services.errors import ServiceError

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


def normalize_service_type(value) -> str:
    return (value or '').strip().lower()


class RateResolver:
    """
    Process-wide cache of the active rate table.

    Created once per application (see ``crewpay.server.create_app``) and
    refreshed explicitly after every rate change, or lazily once
    ``ttl_seconds`` have elapsed.
    """

    def __init__(self, rate_source: Callable[[], Iterable], crew_directory, ttl_seconds: int = 300):
        self._rate_source = rate_source
        self._crew_directory = crew_directory
        self._ttl_seconds = ttl_seconds
        self._rates: Dict[str, Decimal] = {}
        self._loaded_at: Optional[float] = None
        self._lock = threading.Lock()

    def refresh(self) -> Dict[str, Decimal]:
        """Reload the active rate table. Errors from the rate source propagate."""
        rates = {}
        for rate in self._rate_source():
            key = normalize_service_type(rate.service_type)
            if not key:
                continue
            try:
                rates[key] = Decimal(str(rate.rate_percent))
            except (InvalidOperation, ValueError):
                logger.warning(f"Ignoring malformed commission rate for '{key}': {rate.rate_percent!r}")
        with self._lock:
            self._rates = rates
            self._loaded_at = time.monotonic()
        logger.debug(f"Rate table refreshed with {len(rates)} active rates")
        return dict(rates)

    def invalidate(self):
        with self._lock:
            self._loaded_at = None

    def _ensure_loaded(self):
        with self._lock:
            loaded_at = self._loaded_at
        if loaded_at is None or time.monotonic() - loaded_at >= self._ttl_seconds:
            self.refresh()

    def rates(self) -> Dict[str, Decimal]:
        self._ensure_loaded()
        with self._lock:
            return dict(self._rates)

    def resolve(self, service_type, category, crew_user_id, individual_rate: Optional[Decimal] = None,
                rate_table: Optional[Dict[str, Decimal]] = None) -> Decimal:
        """
        Resolve the commission percentage for one crew member on one booking.

        ``individual_rate`` may be passed when the caller already holds the
        crew profile; otherwise the crew directory is consulted. ``rate_table``
        pins a snapshot taken with ``rates()`` so one aggregation run sees one
        consistent table.
        """
        table = rate_table if rate_table is not None else self.rates()

        by_service = table.get(normalize_service_type(service_type))
        if by_service is not None:
            return by_service

        by_category = table.get(normalize_service_type(category))
        if by_category is not None:
            return by_category

        if individual_rate is None and crew_user_id is not None:
            try:
                profile = self._crew_directory.get_crew_profile(crew_user_id)
            except ServiceError as e:
                logger.warning(f"Crew profile for {crew_user_id} unavailable, resolving rate to zero: {e.message}")
                profile = None
            individual_rate = profile.individual_commission_rate_percent if profile else None
        if individual_rate:
            return Decimal(str(individual_rate))

        return ZERO


def get_rate_resolver() -> RateResolver:
    """The application's rate resolver."""
    return current_app.extensions['rate_resolver']
