"""Booking lookups used to render notification text.

Bookings live in ``service_bookings`` on current deployments and in the older
``bookings`` table on legacy ones. Both are tried in order.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from ..schemas.notification import BookingContext

logger = logging.getLogger(__name__)

BookingLookup = Callable[[Session, int], Optional[Dict[str, Any]]]
ProviderUserLookup = Callable[[Session, int], Optional[int]]


def _first_row(db: Session, sql: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    try:
        row = db.execute(text(sql), params).mappings().first()
    except (OperationalError, ProgrammingError) as exc:
        # Table not present on this deployment
        db.rollback()
        logger.debug("Lookup skipped: %s", exc.orig)
        return None
    return dict(row) if row else None


def _from_service_bookings(db: Session, booking_id: int) -> Optional[Dict[str, Any]]:
    return _first_row(
        db,
        "SELECT sb.id, sb.user_id, sb.provider_id, sb.pet_name, sb.booking_date, sb.booking_time, "
        "sb.price AS total_amount, sp.name AS service_name, spr.name AS provider_name, "
        "pu.first_name AS provider_first_name, pu.last_name AS provider_last_name "
        "FROM service_bookings sb "
        "LEFT JOIN service_packages sp ON sb.package_id = sp.package_id "
        "LEFT JOIN service_providers spr ON sb.provider_id = spr.provider_id "
        "LEFT JOIN users pu ON spr.user_id = pu.user_id "
        "WHERE sb.id = :booking_id",
        {"booking_id": booking_id},
    )


def _from_legacy_bookings(db: Session, booking_id: int) -> Optional[Dict[str, Any]]:
    row = _first_row(
        db,
        "SELECT b.booking_id AS id, b.user_id, b.provider_id, b.pet_name, b.booking_date, b.booking_time, "
        "b.total_price AS total_amount, spr.name AS provider_name, "
        "pu.first_name AS provider_first_name, pu.last_name AS provider_last_name "
        "FROM bookings b "
        "LEFT JOIN service_providers spr ON b.provider_id = spr.provider_id "
        "LEFT JOIN users pu ON spr.user_id = pu.user_id "
        "WHERE b.booking_id = :booking_id",
        {"booking_id": booking_id},
    )
    if row is not None:
        row["service_name"] = "Cremation Service"
    return row


BOOKING_LOOKUPS: List[BookingLookup] = [_from_service_bookings, _from_legacy_bookings]


def get_booking_context(db: Session, booking_id: int) -> Optional[BookingContext]:
    for lookup in BOOKING_LOOKUPS:
        row = lookup(db, booking_id)
        if row is None:
            continue
        if not row.get("provider_name"):
            full_name = " ".join(
                p for p in (row.get("provider_first_name"), row.get("provider_last_name")) if p
            )
            row["provider_name"] = full_name or None
        return BookingContext(**row)
    return None


def _user_id_from(db: Session, sql: str, provider_id: int) -> Optional[int]:
    row = _first_row(db, sql, {"provider_id": provider_id})
    if row is None or row.get("user_id") is None:
        return None
    return int(row["user_id"])


def _provider_from_service_providers(db: Session, provider_id: int) -> Optional[int]:
    return _user_id_from(db, "SELECT user_id FROM service_providers WHERE provider_id = :provider_id", provider_id)


def _provider_from_businesses(db: Session, provider_id: int) -> Optional[int]:
    return _user_id_from(db, "SELECT user_id FROM businesses WHERE id = :provider_id", provider_id)


def _provider_from_business_users(db: Session, provider_id: int) -> Optional[int]:
    return _user_id_from(
        db, "SELECT user_id FROM users WHERE user_id = :provider_id AND role = 'business'", provider_id
    )


# Tried in order; the first strategy returning a user id wins
PROVIDER_USER_LOOKUPS: List[ProviderUserLookup] = [
    _provider_from_service_providers,
    _provider_from_businesses,
    _provider_from_business_users,
]


def resolve_provider_user_id(
    db: Session,
    provider_id: int | None,
    lookups: List[ProviderUserLookup] | None = None,
) -> Optional[int]:
    """Return the account id that owns ``provider_id``, or ``None``."""
    if provider_id is None:
        return None
    for lookup in lookups if lookups is not None else PROVIDER_USER_LOOKUPS:
        user_id = lookup(db, provider_id)
        if user_id is not None:
            return user_id
    return None
