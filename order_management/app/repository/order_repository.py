from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager, selectinload

from ..models.order import INVOICE_COUNTER, Counter, Order
from ..models.user import User
from ..services.listing import ListingFilter, Page
from ._search import substring_match

_SEARCH_COLUMNS = {
    "name": Order.name,
    "owner_name": User.name,
    "owner_email": User.email,
}


def _conditions(listing_filter: ListingFilter) -> List[ColumnElement[bool]]:
    conditions: List[ColumnElement[bool]] = []

    if listing_filter.status is not None:
        conditions.append(Order.status == listing_filter.status.value)
    if listing_filter.payment_method:
        conditions.append(Order.payment_method == listing_filter.payment_method)
    if listing_filter.owner_id is not None:
        conditions.append(Order.user_id == listing_filter.owner_id)
    if listing_filter.created_from is not None:
        conditions.append(Order.created_at >= listing_filter.created_from)
    if listing_filter.created_before is not None:
        conditions.append(Order.created_at < listing_filter.created_before)
    if listing_filter.search and listing_filter.search_fields:
        columns = [_SEARCH_COLUMNS[field] for field in listing_filter.search_fields]
        conditions.append(substring_match(columns, listing_filter.search))

    return conditions


class OrderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def next_sequence(self, name: str) -> int:
        """Increment and return the named counter (created at 1)."""
        counter = await self.session.get(Counter, name, with_for_update=True)
        if counter is None:
            counter = Counter(name=name, seq=0)
            self.session.add(counter)
        counter.seq += 1
        await self.session.flush()
        return counter.seq

    async def create(self, order: Order) -> Order:
        """Persist a new order, assigning the next invoice number."""
        order.invoice_no = str(await self.next_sequence(INVOICE_COUNTER))
        self.session.add(order)
        await self.session.commit()
        return await self.get_by_id(order.id)  # type: ignore[return-value]

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """Get order by ID with its owner loaded"""
        query = (
            select(Order)
            .options(selectinload(Order.owner))
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    async def list_page(
        self, listing_filter: ListingFilter, page: Page
    ) -> Tuple[List[Order], int]:
        """Count matches and fetch one page, newest first."""
        conditions = _conditions(listing_filter)

        count_query = (
            select(func.count(Order.id))
            .select_from(Order)
            .join(Order.owner)
            .where(*conditions)
        )
        total = (await self.session.execute(count_query)).scalar() or 0

        query = (
            select(Order)
            .join(Order.owner)
            .options(contains_eager(Order.owner))
            .where(*conditions)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset(page.skip)
            .limit(page.limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all()), total

    async def update(self, order: Order, updates: Dict[str, Any]) -> Order:
        for field, value in updates.items():
            setattr(order, field, value)
        await self.session.commit()
        return await self.get_by_id(order.id)  # type: ignore[return-value]

    async def delete(self, order: Order) -> None:
        await self.session.delete(order)
        await self.session.commit()

    async def image_keys_for_owner(self, user_id: int) -> List[str]:
        """Storage keys of every image on the user's orders."""
        result = await self.session.execute(
            select(Order.images).where(Order.user_id == user_id)
        )
        return [key for images in result.scalars().all() for key in images or []]
