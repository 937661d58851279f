from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.order import OrderStatus
from ..services.listing import PaginationEnvelope

# Fields an order update may never touch
PROTECTED_ORDER_FIELDS = ("images", "invoice_no", "invoiceNo", "user_id", "userId")


def _required_text(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


class OrderCreateRequest(BaseModel):
    """Order fields submitted alongside the uploaded images."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., max_length=255)
    address: str = Field(..., max_length=500)
    price: float = Field(..., ge=0)
    phone_number: str = Field(..., alias="phoneNumber", max_length=30)
    details: str
    payment_method: Optional[str] = Field(None, alias="paymentMethod", max_length=50)

    @field_validator("name", "address", "phone_number", "details")
    @classmethod
    def not_blank(cls, value: str) -> str:
        return _required_text(value)


class OrderUpdateRequest(BaseModel):
    """Fields an admin may change on an order; unknown keys are ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = Field(None, max_length=500)
    price: Optional[float] = Field(None, ge=0)
    phone_number: Optional[str] = Field(None, alias="phoneNumber", max_length=30)
    details: Optional[str] = None
    payment_method: Optional[str] = Field(None, alias="paymentMethod", max_length=50)
    status: Optional[OrderStatus] = None

    @field_validator("name", "address", "phone_number", "details")
    @classmethod
    def not_blank(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _required_text(value)

    def changes(self) -> Dict[str, Any]:
        updates = self.model_dump(exclude_unset=True)
        if updates.get("status") is not None:
            updates["status"] = updates["status"].value
        # payment_method is the only nullable column
        return {
            key: value
            for key, value in updates.items()
            if value is not None or key == "payment_method"
        }


class OrderStatusUpdateRequest(BaseModel):
    status: OrderStatus


class OrderOwner(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str


class OrderOut(BaseModel):
    id: int
    name: str
    images: List[str]
    invoice_no: Optional[str] = None
    address: str
    price: float
    phone_number: str
    details: str
    payment_method: Optional[str] = None
    status: OrderStatus
    user_id: int
    user: Optional[OrderOwner] = None
    created_at: datetime
    updated_at: datetime


class OrderResponse(BaseModel):
    order: OrderOut


class OrderMessageResponse(BaseModel):
    message: str
    order: OrderOut


class OrderListResponse(BaseModel):
    data: List[OrderOut]
    pagination: PaginationEnvelope
