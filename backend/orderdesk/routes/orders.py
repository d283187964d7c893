"""
OrderDesk Backend — Order Route Handlers
==========================================

What:  HTTP surface of the order store: submit, list, search, lookup, patch, delete.
How:   Extracts path/query/body values, delegates to OrderService, returns JSON.
       Errors raised by the service are formatted by the global handlers.

Route Inventory:
    POST   /orders                       submit (create or update by iqama)
    GET    /orders?page&limit            paginated listing, newest first
    GET    /orders/search?iqama=         latest order for an iqama
    GET    /orders/{order_id}            single order
    PATCH  /order-update/{order_id}      merge arbitrary fields
    PATCH  /order-status/{order_id}      merge status/OTP fields
    GET    /orderdPhone/{mobileNumber}   orders for a phone number
    DELETE /orders/{order_id}            delete one order
    DELETE /deleteOrder                  bulk delete, body {"ids": [...]}
    DELETE /deleteOrder/{order_id}       delete one order, bulk response shape

    /orders/search is registered before /orders/{order_id} so "search" is
    never read as an id.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from orderdesk.config import settings
from orderdesk.database import get_db_session
from orderdesk.schemas.common import ErrorResponse
from orderdesk.schemas.order import (
    BulkDeleteRequest,
    DeleteResponse,
    OrderListResponse,
    OrderMutationResponse,
    OrderResponse,
    OrderSubmission,
    SubmitOrderResponse,
)
from orderdesk.services.order_service import order_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Orders"])

_BAD_REQUEST = {400: {"description": "Invalid input", "model": ErrorResponse}}
_NOT_FOUND = {404: {"description": "Order not found", "model": ErrorResponse}}


@router.post(
    "/orders",
    response_model=SubmitOrderResponse,
    responses=_BAD_REQUEST,
    summary="Submit an order",
    description=(
        "Creates an order. When the payload carries an iqama that already has an "
        "order, that order is updated in place instead and status is 'updated'."
    ),
)
async def submit_order(
    payload: OrderSubmission,
    db: AsyncSession = Depends(get_db_session),
) -> SubmitOrderResponse:
    return await order_service.submit_order(db, payload)


@router.get(
    "/orders",
    response_model=OrderListResponse,
    responses=_BAD_REQUEST,
    summary="List orders, newest first",
)
async def list_orders(
    page: int = Query(default=1, description="1-based page number"),
    limit: Optional[int] = Query(default=None, description="Orders per page"),
    db: AsyncSession = Depends(get_db_session),
) -> OrderListResponse:
    return await order_service.list_orders(
        db,
        page=page,
        limit=limit if limit is not None else settings.default_page_size,
    )


@router.get(
    "/orders/search",
    response_model=OrderResponse,
    responses={**_BAD_REQUEST, **_NOT_FOUND},
    summary="Latest order for an Iqama number",
)
async def search_orders(
    iqama: Optional[str] = Query(default=None, description="Iqama number to search for"),
    db: AsyncSession = Depends(get_db_session),
) -> OrderResponse:
    return await order_service.search_by_iqama(db, iqama)


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    responses={**_BAD_REQUEST, **_NOT_FOUND},
    summary="Get a single order by id",
)
async def get_order(
    order_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> OrderResponse:
    return await order_service.get_order(db, order_id)


@router.patch(
    "/order-update/{order_id}",
    response_model=OrderMutationResponse,
    responses={**_BAD_REQUEST, **_NOT_FOUND},
    summary="Merge fields into an order",
)
async def update_order(
    order_id: str,
    fields: Dict[str, Any] = Body(..., description="Fields to set on the order"),
    db: AsyncSession = Depends(get_db_session),
) -> OrderMutationResponse:
    return await order_service.patch_order(db, order_id, fields)


@router.patch(
    "/order-status/{order_id}",
    response_model=OrderMutationResponse,
    responses={**_BAD_REQUEST, **_NOT_FOUND},
    summary="Update status/OTP fields of an order",
)
async def update_order_status(
    order_id: str,
    fields: Dict[str, Any] = Body(..., description="Status fields to set on the order"),
    db: AsyncSession = Depends(get_db_session),
) -> OrderMutationResponse:
    return await order_service.patch_order_status(db, order_id, fields)


@router.get(
    "/orderdPhone/{mobileNumber}",
    response_model=List[OrderResponse],
    responses=_NOT_FOUND,
    summary="Orders for a mobile number",
)
async def orders_by_mobile(
    mobileNumber: str,
    db: AsyncSession = Depends(get_db_session),
) -> List[OrderResponse]:
    return await order_service.find_by_mobile(db, mobileNumber)


@router.delete(
    "/orders/{order_id}",
    response_model=DeleteResponse,
    responses={**_BAD_REQUEST, **_NOT_FOUND},
    summary="Delete one order",
)
async def delete_order(
    order_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> DeleteResponse:
    return await order_service.delete_order(db, order_id)


@router.delete(
    "/deleteOrder",
    response_model=DeleteResponse,
    responses=_BAD_REQUEST,
    summary="Delete many orders",
    description="All ids are validated first; one malformed id rejects the whole request.",
)
async def delete_orders(
    body: BulkDeleteRequest,
    db: AsyncSession = Depends(get_db_session),
) -> DeleteResponse:
    return await order_service.delete_orders(db, body.ids)


@router.delete(
    "/deleteOrder/{order_id}",
    response_model=DeleteResponse,
    responses=_BAD_REQUEST,
    summary="Delete one order (bulk response shape)",
)
async def delete_order_by_path(
    order_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> DeleteResponse:
    return await order_service.delete_orders(db, [order_id])
