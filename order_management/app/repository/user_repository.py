from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import User
from ..services.listing import ListingFilter, Page
from ._search import substring_match

_SEARCH_COLUMNS = {
    "name": User.name,
    "email": User.email,
    "phone": User.phone,
}


def _conditions(listing_filter: ListingFilter) -> List[ColumnElement[bool]]:
    conditions: List[ColumnElement[bool]] = []
    if listing_filter.role is not None:
        conditions.append(User.role == listing_filter.role.value)
    if listing_filter.search and listing_filter.search_fields:
        columns = [_SEARCH_COLUMNS[field] for field in listing_filter.search_fields]
        conditions.append(substring_match(columns, listing_filter.search))
    return conditions


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def query_id(self, user_id: int) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def query_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def list_page(
        self, listing_filter: ListingFilter, page: Page
    ) -> Tuple[List[User], int]:
        conditions = _conditions(listing_filter)

        count_query = select(func.count(User.id)).where(*conditions)
        total = (await self.session.execute(count_query)).scalar() or 0

        query = (
            select(User)
            .where(*conditions)
            .order_by(User.created_at.desc(), User.id.desc())
            .offset(page.skip)
            .limit(page.limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all()), total

    async def create(self, user: User) -> User:
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def update(self, user: User, updates: Dict[str, Any]) -> User:
        for field, value in updates.items():
            setattr(user, field, value)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def delete(self, user: User) -> None:
        await self.session.delete(user)
        await self.session.commit()
