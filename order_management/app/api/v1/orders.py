from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, File, Form, Query, UploadFile, status

from order_management.app.api.dependencies import (
    AdminUserDep,
    CurrentUserDep,
    OrderIdDep,
    OrderServiceDep,
    SettingsDep,
)
from order_management.app.core.settings import OrderManagementSettings
from order_management.app.schemas.order import (
    OrderListResponse,
    OrderMessageResponse,
    OrderResponse,
    OrderStatusUpdateRequest,
)
from order_management.app.schemas.user import MessageResponse, Principal
from order_management.app.services.listing import Page, parse_page
from order_management.app.services.order_service import ImageUpload, OrderService
from order_management.app.utils.logging import get_order_logger

logger = get_order_logger("order_management.orders_api")
router = APIRouter(prefix="/api/orders", tags=["orders"])


def _page(
    page: Optional[str], limit: Optional[str], settings: OrderManagementSettings
) -> Page:
    return parse_page(
        page,
        limit,
        default_limit=settings.DEFAULT_PAGE_SIZE,
        max_limit=settings.MAX_PAGE_SIZE,
    )


@router.post(
    "/", response_model=OrderMessageResponse, status_code=status.HTTP_201_CREATED
)
async def create_order(
    principal: Principal = CurrentUserDep,
    name: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    phone_number: Optional[str] = Form(None, alias="phoneNumber"),
    details: Optional[str] = Form(None),
    payment_method: Optional[str] = Form(None, alias="paymentMethod"),
    images: Optional[List[UploadFile]] = File(None),
    service: OrderService = OrderServiceDep,
) -> OrderMessageResponse:
    """Create an order for the caller from a multipart form with 1-5 images."""

    # Reject on count and content type before any file body is read
    service.check_images(images or [])
    uploads = [
        ImageUpload(
            filename=image.filename,
            content_type=image.content_type,
            content=await image.read(),
        )
        for image in images or []
    ]
    fields = {
        "name": name,
        "address": address,
        "price": price,
        "phoneNumber": phone_number,
        "details": details,
        "paymentMethod": payment_method or None,
    }
    present = {key: value for key, value in fields.items() if value is not None}
    order = await service.create_order(principal, present, uploads)
    return OrderMessageResponse(message="Order created successfully", order=order)


@router.get("/all", response_model=OrderListResponse)
async def list_orders(
    admin: Principal = AdminUserDep,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    method: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    user_id: Optional[str] = Query(None, alias="userId"),
    service: OrderService = OrderServiceDep,
    settings: OrderManagementSettings = SettingsDep,
) -> OrderListResponse:
    params = {
        "search": search,
        "status": status_filter,
        "method": method,
        "startDate": start_date,
        "endDate": end_date,
        "userId": user_id,
    }
    result = await service.list_orders(params, _page(page, limit, settings))
    return OrderListResponse(**result)


@router.get("/my-orders", response_model=OrderListResponse)
async def list_my_orders(
    principal: Principal = CurrentUserDep,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    method: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    service: OrderService = OrderServiceDep,
    settings: OrderManagementSettings = SettingsDep,
) -> OrderListResponse:
    params = {
        "search": search,
        "status": status_filter,
        "method": method,
        "startDate": start_date,
        "endDate": end_date,
    }
    result = await service.list_owner_orders(
        principal, params, _page(page, limit, settings)
    )
    return OrderListResponse(**result)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    principal: Principal = CurrentUserDep,
    order_id: int = OrderIdDep,
    service: OrderService = OrderServiceDep,
) -> OrderResponse:
    return OrderResponse(order=await service.get_order(principal, order_id))


@router.patch("/{order_id}/status", response_model=OrderMessageResponse)
async def update_order_status(
    admin: Principal = AdminUserDep,
    order_id: int = OrderIdDep,
    body: Dict[str, Any] = Body(...),
    service: OrderService = OrderServiceDep,
) -> OrderMessageResponse:
    # Unknown status values are a 400, not a 422
    data = OrderStatusUpdateRequest.model_validate(body)
    order = await service.update_status(order_id, data.status)
    return OrderMessageResponse(message="Order status updated", order=order)


@router.patch("/{order_id}", response_model=OrderMessageResponse)
async def update_order(
    admin: Principal = AdminUserDep,
    order_id: int = OrderIdDep,
    body: Dict[str, Any] = Body(...),
    service: OrderService = OrderServiceDep,
) -> OrderMessageResponse:
    order = await service.update_order(order_id, body)
    return OrderMessageResponse(message="Order updated", order=order)


@router.delete("/{order_id}", response_model=MessageResponse)
async def delete_order(
    admin: Principal = AdminUserDep,
    order_id: int = OrderIdDep,
    service: OrderService = OrderServiceDep,
) -> MessageResponse:
    await service.delete_order(order_id)
    logger.info(
        "Order deleted by admin", extra={"order_id": order_id, "admin_id": admin.id}
    )
    return MessageResponse(message="Order deleted successfully")
