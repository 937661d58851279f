from typing import Any, Dict, Mapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import Conflict, NotFound, UpstreamFailure
from ..models.user import User
from ..repository.order_repository import OrderRepository
from ..repository.user_repository import UserRepository
from ..schemas.user import Principal, UserUpdateRequest
from ..storage.images import ImageStorage, discard_images
from ..utils.logging import get_order_logger
from .listing import Page, build_envelope, build_user_filter

logger = get_order_logger("order_management.user_service")


class UserService:
    """Admin user management."""

    def __init__(self, session: AsyncSession, storage: Optional[ImageStorage] = None):
        self.session = session
        self.storage = storage
        self.user_repository = UserRepository(session)
        self.order_repository = OrderRepository(session)

    async def _get_user(self, user_id: int) -> User:
        try:
            user = await self.user_repository.query_id(user_id)
        except SQLAlchemyError as e:
            raise UpstreamFailure("Error fetching user", error=e)
        if not user:
            raise NotFound("User not found")
        return user

    async def list_users(
        self, params: Mapping[str, Optional[str]], page: Page
    ) -> Dict[str, Any]:
        """Regular users matching ``search`` on name/email/phone, newest first."""

        listing_filter = build_user_filter(params)
        try:
            users, total = await self.user_repository.list_page(listing_filter, page)
        except SQLAlchemyError as e:
            raise UpstreamFailure("Error fetching users", error=e)

        return {
            "data": [Principal.model_validate(user) for user in users],
            "pagination": build_envelope(page, total),
        }

    async def update_user(self, user_id: int, body: Mapping[str, Any]) -> Principal:
        """Partially update a user from a raw JSON object.

        Coercion failures surface as pydantic ``ValidationError`` (400).
        """
        changes = UserUpdateRequest.model_validate(dict(body)).changes()
        user = await self._get_user(user_id)
        if "email" in changes:
            changes["email"] = changes["email"].lower()

        try:
            user = await self.user_repository.update(user, changes)
        except IntegrityError:
            await self.session.rollback()
            raise Conflict("Email already exists")
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise UpstreamFailure("Error updating user", error=e)

        logger.info(
            "User updated",
            extra={"user_id": user_id, "fields": sorted(changes)},
        )
        return Principal.model_validate(user)

    async def delete_user(self, user_id: int) -> None:
        """Delete the user; their orders go with them, then their images."""
        user = await self._get_user(user_id)
        try:
            image_keys = await self.order_repository.image_keys_for_owner(user_id)
            await self.user_repository.delete(user)
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise UpstreamFailure("Error deleting user", error=e)

        if self.storage is not None:
            await discard_images(self.storage, image_keys)
        logger.info(
            "User deleted",
            extra={"user_id": user_id, "image_count": len(image_keys)},
        )
