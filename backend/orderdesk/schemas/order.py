"""
OrderDesk Backend — Order Request/Response Schemas
====================================================

What:  Pydantic models defining the order API contract.
How:   Orders are open documents. A handful of fields are typed (iqama,
       mobile, orderDate); everything else a client sends travels through
       `extra="allow"` and is stored in the order's attribute map.

Field naming:
    Clients have historically sent the identity number as either `iqama`
    or `iqamaNumber`. Both are accepted on input; responses always use `iqama`.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from orderdesk.models.order import IQAMA_MAX_LENGTH, MOBILE_MAX_LENGTH


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise a timestamp to UTC; naive values are taken to already be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class OrderSubmission(BaseModel):
    """
    What:  Body of POST /orders.
    How:   Typed fields are validated; unknown fields are kept verbatim in
           `model_extra` and end up in the order's attribute map.
    """
    model_config = ConfigDict(extra="allow")

    iqama: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("iqama", "iqamaNumber"),
        max_length=IQAMA_MAX_LENGTH,
        description="Customer identity number; resubmitting the same value updates the order",
    )
    mobile: Optional[str] = Field(
        default=None,
        max_length=MOBILE_MAX_LENGTH,
        description="Customer phone number",
    )
    order_date: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("orderDate", "order_date"),
        description="When the order was placed (ISO 8601)",
    )

    @field_validator("order_date")
    @classmethod
    def normalise_order_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Order dates are stored in UTC."""
        return as_utc(v)

    def extra_fields(self) -> Dict[str, Any]:
        """Submitted fields that have no dedicated column."""
        return dict(self.model_extra or {})


class OrderResponse(BaseModel):
    """
    What:  Flat JSON representation of an order.
    How:   Attribute-map entries are merged in at the top level next to the
           typed fields, so clients see the document they submitted.
    """
    model_config = ConfigDict(extra="allow")

    id: uuid.UUID = Field(description="System-assigned order identifier")
    iqama: Optional[str] = None
    mobile: Optional[str] = None
    orderDate: Optional[datetime] = None
    createdAt: datetime
    updatedAt: datetime


class SubmitOrderResponse(BaseModel):
    message: str
    status: Literal["created", "updated"]
    order: OrderResponse


class OrderMutationResponse(BaseModel):
    message: str
    order: OrderResponse


class OrderListResponse(BaseModel):
    """
    What:  Page-number pagination envelope for GET /orders.

    Example (25 orders, page=2, limit=10):
        {"totalOrders": 25, "totalPages": 3, "currentPage": 2, "orders": [...10 items]}
    """
    totalOrders: int = Field(description="Number of orders in the collection")
    totalPages: int = Field(description="ceil(totalOrders / limit)")
    currentPage: int = Field(description="The page that was requested")
    orders: List[OrderResponse]


class BulkDeleteRequest(BaseModel):
    """Body of DELETE /deleteOrder."""
    ids: List[str] = Field(description="Order identifiers to delete; all must be valid")


class DeleteResponse(BaseModel):
    message: str
    deletedCount: int = Field(description="Number of orders removed")
