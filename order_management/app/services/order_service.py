from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import Forbidden, NotFound, UpstreamFailure, ValidationFailed
from ..models.order import Order, OrderStatus
from ..repository.order_repository import OrderRepository
from ..schemas.order import (
    PROTECTED_ORDER_FIELDS,
    OrderCreateRequest,
    OrderOut,
    OrderOwner,
    OrderUpdateRequest,
)
from ..schemas.user import Principal
from ..storage.images import ImageStorage, discard_images, make_storage_key
from ..utils.logging import get_order_logger
from .listing import Page, build_envelope, build_order_filter

logger = get_order_logger("order_management.order_service")

MAX_ORDER_IMAGES = 5


@dataclass
class ImageUpload:
    """One uploaded file, already read into memory."""

    filename: Optional[str]
    content_type: Optional[str]
    content: bytes


class OrderService:
    def __init__(
        self,
        session: AsyncSession,
        storage: ImageStorage,
        max_images: int = MAX_ORDER_IMAGES,
    ):
        self.session = session
        self.storage = storage
        self.max_images = max_images
        self.order_repository = OrderRepository(session)

    async def _to_out(self, order: Order) -> OrderOut:
        owner = None
        # Listing rows carry their owner; freshly committed rows may not
        if "owner" not in inspect(order).unloaded and order.owner is not None:
            owner = OrderOwner.model_validate(order.owner)

        return OrderOut(
            id=order.id,
            name=order.name,
            images=[await self.storage.url_for(key) for key in order.images or []],
            invoice_no=order.invoice_no,
            address=order.address,
            price=order.price,
            phone_number=order.phone_number,
            details=order.details,
            payment_method=order.payment_method,
            status=OrderStatus(order.status),
            user_id=order.user_id,
            user=owner,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )

    def check_images(self, images: Sequence[Any]) -> None:
        """Count and content-type checks; works on uploads before they are read."""
        if not images:
            raise ValidationFailed("At least one image is required")
        if len(images) > self.max_images:
            raise ValidationFailed(
                f"At most {self.max_images} images are allowed",
                details={"received": len(images)},
            )
        for image in images:
            if not (image.content_type or "").startswith("image/"):
                raise ValidationFailed(
                    "Only image files are allowed",
                    details={"filename": image.filename},
                )

    async def _get_order(self, order_id: int) -> Order:
        try:
            order = await self.order_repository.get_by_id(order_id)
        except SQLAlchemyError as e:
            raise UpstreamFailure("Error fetching order", error=e)
        if not order:
            raise NotFound("Order not found")
        return order

    async def create_order(
        self,
        principal: Principal,
        fields: Mapping[str, Any],
        images: Sequence[ImageUpload],
    ) -> OrderOut:
        """Validate, store the images, then persist the order for the caller.

        Nothing is written to storage or the database unless both the images
        and the order fields are valid.
        """
        self.check_images(images)
        # pydantic ValidationError is rendered as 400 by the error handler
        data = OrderCreateRequest.model_validate(dict(fields))

        stored_keys: List[str] = []
        for image in images:
            key = make_storage_key(image.filename)
            stored_keys.append(
                await self.storage.save(key, image.content, image.content_type)
            )

        try:
            order = await self.order_repository.create(
                Order(
                    name=data.name,
                    images=stored_keys,
                    address=data.address,
                    price=data.price,
                    phone_number=data.phone_number,
                    details=data.details,
                    payment_method=data.payment_method,
                    user_id=principal.id,
                    status=OrderStatus.PENDING.value,
                )
            )
        except SQLAlchemyError as e:
            await self.session.rollback()
            await discard_images(self.storage, stored_keys)
            raise UpstreamFailure("Error creating order", error=e)

        logger.info(
            "Order created",
            extra={
                "order_id": order.id,
                "invoice_no": order.invoice_no,
                "user_id": principal.id,
                "image_count": len(stored_keys),
            },
        )
        return await self._to_out(order)

    async def _list(
        self, params: Mapping[str, Optional[str]], page: Page, owner_id: Optional[int]
    ) -> Dict[str, Any]:
        listing_filter = build_order_filter(params, owner_id=owner_id)
        try:
            orders, total = await self.order_repository.list_page(listing_filter, page)
        except SQLAlchemyError as e:
            raise UpstreamFailure("Error fetching orders", error=e)

        return {
            "data": [await self._to_out(order) for order in orders],
            "pagination": build_envelope(page, total),
        }

    async def list_orders(
        self, params: Mapping[str, Optional[str]], page: Page
    ) -> Dict[str, Any]:
        return await self._list(params, page, owner_id=None)

    async def list_owner_orders(
        self, principal: Principal, params: Mapping[str, Optional[str]], page: Page
    ) -> Dict[str, Any]:
        """The caller's orders; a ``userId`` parameter is ignored."""
        return await self._list(params, page, owner_id=principal.id)

    async def get_order(self, principal: Principal, order_id: int) -> OrderOut:
        order = await self._get_order(order_id)
        if order.user_id != principal.id and not principal.is_admin:
            logger.warning(
                "Order access denied",
                extra={"order_id": order_id, "user_id": principal.id},
            )
            raise Forbidden("Access denied")
        return await self._to_out(order)

    async def _apply(self, order: Order, changes: Dict[str, Any]) -> OrderOut:
        try:
            order = await self.order_repository.update(order, changes)
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise UpstreamFailure("Error updating order", error=e)
        return await self._to_out(order)

    async def update_status(self, order_id: int, status: OrderStatus) -> OrderOut:
        order = await self._get_order(order_id)
        previous = order.status
        updated = await self._apply(order, {"status": status.value})
        logger.info(
            "Order status updated",
            extra={"order_id": order_id, "from": previous, "to": status.value},
        )
        return updated

    async def update_order(self, order_id: int, body: Mapping[str, Any]) -> OrderOut:
        """Partially update an order from a raw JSON object."""
        for field in PROTECTED_ORDER_FIELDS:
            if field in body:
                raise ValidationFailed(
                    f"Field '{field}' cannot be modified", details={"field": field}
                )

        changes = OrderUpdateRequest.model_validate(dict(body)).changes()
        order = await self._get_order(order_id)
        updated = await self._apply(order, changes)
        logger.info(
            "Order updated",
            extra={"order_id": order_id, "fields": sorted(changes)},
        )
        return updated

    async def delete_order(self, order_id: int) -> None:
        order = await self._get_order(order_id)
        keys = list(order.images or [])
        try:
            await self.order_repository.delete(order)
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise UpstreamFailure("Error deleting order", error=e)

        await discard_images(self.storage, keys)
        logger.info("Order deleted", extra={"order_id": order_id})
