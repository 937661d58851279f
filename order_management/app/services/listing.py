"""
Listing query building for paginated, filtered endpoints.

Request parameters arrive as untrusted strings. This module turns them into
an immutable ``ListingFilter`` and a bounded ``Page``, and shapes the
pagination block of listing responses. Executing a filter is the
repository's job (see ``OrderRepository.list_page`` and
``UserRepository.list_page``); both order results by creation time,
newest first.

Search targets per endpoint:

* ``GET /api/orders/all`` and ``/api/orders/my-orders``: owner's name and email
* ``GET /api/users/``: name, email and phone
"""

import math
import re
from datetime import date, datetime, time, timedelta
from typing import Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from ..core.exceptions import ValidationFailed
from ..models.order import OrderStatus
from ..models.user import Role

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

ORDER_SEARCH_FIELDS: Tuple[str, ...] = ("owner_name", "owner_email")
USER_SEARCH_FIELDS: Tuple[str, ...] = ("name", "email", "phone")

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class Page(BaseModel):
    """Pagination window for one request."""

    model_config = ConfigDict(frozen=True)

    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class ListingFilter(BaseModel):
    """Normalized query constraints for a listing endpoint."""

    model_config = ConfigDict(frozen=True)

    status: Optional[OrderStatus] = None
    payment_method: Optional[str] = None
    owner_id: Optional[int] = None
    role: Optional[Role] = None
    # created_from <= created_at < created_before
    created_from: Optional[datetime] = None
    created_before: Optional[datetime] = None
    search: Optional[str] = None
    search_fields: Tuple[str, ...] = ()


class PaginationEnvelope(BaseModel):
    current: int
    limit: int
    items: int
    pages: int
    prev: Optional[int] = None
    next: Optional[int] = None


def _positive_int(raw: Optional[str]) -> Optional[int]:
    """Leading decimal integer of ``raw``, so "2.5" and "3abc" give 2 and 3."""
    if raw is None:
        return None
    match = _LEADING_INT.match(str(raw))
    if match is None:
        return None
    value = int(match.group(1))
    return value if value > 0 else None


def parse_page(
    raw_page: Optional[str],
    raw_limit: Optional[str],
    default_limit: int = DEFAULT_LIMIT,
    max_limit: Optional[int] = None,
) -> Page:
    """Parse page/limit query values.

    Absent, malformed or non-positive values fall back to the defaults;
    ``limit`` is clamped to ``max_limit`` when one is given.
    """
    page = _positive_int(raw_page) or DEFAULT_PAGE
    limit = _positive_int(raw_limit) or default_limit
    if max_limit is not None:
        limit = min(limit, max_limit)
    return Page(page=page, limit=limit)


def parse_identifier(raw: Optional[str]) -> Optional[int]:
    """Return the stored id encoded by ``raw``, or None if it is not one."""
    if raw is None:
        return None
    raw = raw.strip()
    if not raw.isdigit() or not raw.isascii():
        return None
    value = int(raw)
    return value if value > 0 else None


def parse_calendar_date(raw: str, field: str) -> date:
    """Parse ``YYYY-MM-DD`` (a full ISO timestamp is truncated to its date)."""
    value = raw.strip()
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        raise ValidationFailed(
            f"Invalid {field}: expected YYYY-MM-DD", details={"field": field}
        )


def _present(params: Mapping[str, Optional[str]], key: str) -> Optional[str]:
    value = params.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _date_bounds(
    params: Mapping[str, Optional[str]],
) -> Tuple[Optional[datetime], Optional[datetime]]:
    created_from = None
    created_before = None

    start_raw = _present(params, "startDate")
    if start_raw:
        created_from = datetime.combine(
            parse_calendar_date(start_raw, "startDate"), time.min
        )

    end_raw = _present(params, "endDate")
    if end_raw:
        # Exclusive bound one day later keeps the whole end date
        end = parse_calendar_date(end_raw, "endDate") + timedelta(days=1)
        created_before = datetime.combine(end, time.min)

    return created_from, created_before


def build_order_filter(
    params: Mapping[str, Optional[str]], owner_id: Optional[int] = None
) -> ListingFilter:
    """Build the order listing filter.

    Recognized parameters: ``status``, ``method``, ``userId``, ``startDate``,
    ``endDate`` and ``search``. A malformed ``userId`` is dropped. When
    ``owner_id`` is given it replaces any ``userId`` parameter.
    """
    status = None
    status_raw = _present(params, "status")
    if status_raw:
        try:
            status = OrderStatus(status_raw)
        except ValueError:
            raise ValidationFailed(
                f"Invalid status '{status_raw}'",
                details={
                    "field": "status",
                    "allowed": [s.value for s in OrderStatus],
                },
            )

    if owner_id is None:
        owner_id = parse_identifier(_present(params, "userId"))

    created_from, created_before = _date_bounds(params)
    search = _present(params, "search")

    return ListingFilter(
        status=status,
        payment_method=_present(params, "method"),
        owner_id=owner_id,
        created_from=created_from,
        created_before=created_before,
        search=search,
        search_fields=ORDER_SEARCH_FIELDS if search else (),
    )


def build_user_filter(params: Mapping[str, Optional[str]]) -> ListingFilter:
    """Build the admin user listing filter: regular users only, plus search."""
    search = _present(params, "search")
    return ListingFilter(
        role=Role.USER,
        search=search,
        search_fields=USER_SEARCH_FIELDS if search else (),
    )


def build_envelope(page: Page, total: int) -> PaginationEnvelope:
    pages = math.ceil(total / page.limit) if total > 0 else 0
    return PaginationEnvelope(
        current=page.page,
        limit=page.limit,
        items=total,
        pages=pages,
        prev=page.page - 1 if page.page > 1 else None,
        next=page.page + 1 if page.page < pages else None,
    )
