"""
OrderDesk Backend — Order Service (Order Store Facade)
========================================================

What:  Every operation on the orders collection: submit (create-or-update by
       iqama), point lookups, paginated listing, search, patching, deletion.
How:   Async SQLAlchemy against the request's session. Store failures are
       translated into DatabaseError; missing rows into NotFoundError;
       malformed identifiers into ValidationError.
Who:   Called by the handlers in routes/orders.py.

Business-key upsert (POST /orders):
    ┌─────────────┐   iqama present   ┌──────────────────────────────────────┐
    │  payload    │──────────────────▶│ INSERT ... ON CONFLICT (iqama)       │
    └─────────────┘                   │   DO UPDATE SET <payload fields>,    │
          │ no iqama                  │   attributes = attributes ⊕ payload, │
          ▼                           │   revision = revision + 1            │
    plain INSERT                      │ RETURNING id, revision               │
                                      └──────────────────────────────────────┘
    revision == 1 → "created", otherwise "updated". The statement is a single
    round trip, so two concurrent submissions for one iqama cannot both insert.

Field mapping:
    iqama / iqamaNumber   → orders.iqama
    mobile                → orders.mobile
    orderDate / order_date→ orders.order_date
    id, _id, createdAt, updatedAt, revision → ignored (system managed)
    anything else         → orders.attributes[<key>]
"""

import json
import logging
import math
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import pydantic
from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orderdesk.config import settings
from orderdesk.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from orderdesk.models.order import IQAMA_MAX_LENGTH, MOBILE_MAX_LENGTH, Order
from orderdesk.schemas.order import (
    DeleteResponse,
    OrderListResponse,
    OrderMutationResponse,
    OrderResponse,
    OrderSubmission,
    SubmitOrderResponse,
    as_utc,
)

logger = logging.getLogger(__name__)

SYSTEM_FIELDS = frozenset({"id", "_id", "createdAt", "updatedAt", "revision"})
IQAMA_KEYS = frozenset({"iqama", "iqamaNumber"})
ORDER_DATE_KEYS = frozenset({"orderDate", "order_date"})

# Newest first; orders without a date sink to the end
RECENT_FIRST = (
    Order.order_date.desc().nulls_last(),
    Order.created_at.desc(),
    Order.id,
)

_INSERT_BY_DIALECT = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

_order_date_adapter = pydantic.TypeAdapter(Optional[datetime])


# ══════════════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════════════

def parse_order_id(value: Any, field: str = "id") -> uuid.UUID:
    """Parse a client-supplied order identifier, raising ValidationError if malformed."""
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(
            message=f"Invalid order id: '{value}'",
            field=field,
            context={"value": str(value)},
        )


def _parse_order_date(value: Any) -> Optional[datetime]:
    try:
        return as_utc(_order_date_adapter.validate_python(value))
    except pydantic.ValidationError:
        raise ValidationError(
            message=f"Invalid orderDate: '{value}'",
            field="orderDate",
        )


def _bounded_text(value: Any, field: str, max_length: int) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    if len(text) > max_length:
        raise ValidationError(
            message=f"{field} must be at most {max_length} characters",
            field=field,
        )
    return text


def split_fields(fields: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Split a free-form field map into (column values, attribute-map entries).

    System-managed keys are dropped silently. Raises ValidationError for an
    over-long iqama or mobile and for an unparseable orderDate.
    """
    columns: Dict[str, Any] = {}
    extras: Dict[str, Any] = {}
    for key, value in fields.items():
        if key in SYSTEM_FIELDS:
            continue
        if key in IQAMA_KEYS:
            columns["iqama"] = _bounded_text(value, "iqama", IQAMA_MAX_LENGTH)
        elif key == "mobile":
            columns["mobile"] = _bounded_text(value, "mobile", MOBILE_MAX_LENGTH)
        elif key in ORDER_DATE_KEYS:
            columns["order_date"] = _parse_order_date(value)
        else:
            extras[key] = value
    return columns, extras


def to_response(order: Order) -> OrderResponse:
    """Flatten an Order row into its JSON document form."""
    document = dict(order.attributes or {})
    document.update(
        id=order.id,
        iqama=order.iqama,
        mobile=order.mobile,
        orderDate=as_utc(order.order_date),
        createdAt=as_utc(order.created_at),
        updatedAt=as_utc(order.updated_at),
    )
    return OrderResponse.model_validate(document)


def _merge_attributes(dialect: str, current, incoming, extras: Dict[str, Any]):
    """
    SQL expression for a shallow merge of `extras` into the stored map.

    Top-level keys from `extras` replace stored ones whole, including nested
    objects and nulls, matching the in-Python merge used by patch_order.
    PostgreSQL gets JSONB `||`; SQLite gets one json_set path per key.
    """
    if dialect == "postgresql":
        return current.op("||")(incoming)
    if not extras:
        return current
    args: List[Any] = []
    for key, value in extras.items():
        args.append('$."' + key + '"')
        args.append(func.json(json.dumps(value)))
    return func.json_set(current, *args)


@contextmanager
def _store_errors(operation: str, **context: Any) -> Iterator[None]:
    """Translate driver failures into DatabaseError; application errors pass through."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("Database error during %s: %s", operation, str(e), exc_info=True)
        raise DatabaseError(
            message=f"Could not complete {operation}. Please try again.",
            context={"operation": operation, "error_type": type(e).__name__, **context},
        )


# ══════════════════════════════════════════════════════════════════════════
# Service
# ══════════════════════════════════════════════════════════════════════════

class OrderService:
    """
    Business logic layer for order operations.

    Responsibilities:
        - submit_order(): create, or update the order owning the same iqama
        - patch_order() / patch_order_status(): merge arbitrary fields into one order
        - get_order(), search_by_iqama(), find_by_mobile(): lookups
        - list_orders(): page-number pagination, newest first
        - delete_order() / delete_orders(): single and all-or-nothing bulk deletion

    The service is stateless; every call receives the request's session.
    """

    async def _load(self, db: AsyncSession, order_id: uuid.UUID) -> Order:
        with _store_errors("order lookup", order_id=str(order_id)):
            order = await db.get(Order, order_id)
        if order is None:
            raise NotFoundError(resource="order", resource_id=str(order_id), message="Order not found")
        return order

    # ── Create / update ───────────────────────────────────────────────────

    async def submit_order(self, db: AsyncSession, payload: OrderSubmission) -> SubmitOrderResponse:
        """
        Create an order, or update the one that already carries this iqama.

        Payload fields overwrite stored fields of the same name; stored fields
        missing from the payload are kept. Without an iqama the order is
        always inserted.
        """
        values: Dict[str, Any] = {
            name: getattr(payload, name)
            for name in ("iqama", "mobile", "order_date")
            if name in payload.model_fields_set
        }
        _, extras = split_fields(payload.extra_fields())

        if values.get("iqama") is None:
            order = Order(**values, attributes=extras)
            with _store_errors("order creation"):
                db.add(order)
                await db.flush()
            logger.info("Order %s created", order.id)
            return SubmitOrderResponse(
                message="Order created successfully",
                status="created",
                order=to_response(order),
            )

        with _store_errors("order submission", iqama=values["iqama"]):
            dialect = db.get_bind().dialect.name
            insert = _INSERT_BY_DIALECT.get(dialect)
            if insert is None:
                raise DatabaseError(
                    message="Order submission is not supported by this database.",
                    context={"dialect": dialect},
                )

            table = Order.__table__
            stmt = insert(table).values(**values, attributes=extras)
            assignments = {name: stmt.excluded[name] for name in values if name != "iqama"}
            assignments.update(
                attributes=_merge_attributes(
                    dialect, table.c["attributes"], stmt.excluded["attributes"], extras
                ),
                revision=table.c["revision"] + 1,
                updated_at=datetime.now(timezone.utc),
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c["iqama"]],
                set_=assignments,
            ).returning(table.c["id"], table.c["revision"])

            row = (await db.execute(stmt)).one()
            order = await db.get(Order, row.id, populate_existing=True)

        created = row.revision == 1
        logger.info("Order %s %s for iqama", row.id, "created" if created else "updated")
        return SubmitOrderResponse(
            message="Order created successfully" if created else "Order updated successfully",
            status="created" if created else "updated",
            order=to_response(order),
        )

    async def patch_order(
        self,
        db: AsyncSession,
        order_id: str,
        fields: Dict[str, Any],
        message: str = "Order updated successfully",
    ) -> OrderMutationResponse:
        """
        Merge `fields` into an existing order.

        No field-name or type checks beyond coercing orderDate to a timestamp.

        Raises:
            ValidationError: malformed id or unparseable orderDate
            NotFoundError: no order has this id
            ConflictError: the new iqama belongs to another order
        """
        oid = parse_order_id(order_id)
        order = await self._load(db, oid)
        columns, extras = split_fields(fields)

        for name, value in columns.items():
            setattr(order, name, value)
        if extras:
            # New dict so the JSON column registers the change
            order.attributes = {**(order.attributes or {}), **extras}

        with _store_errors("order update", order_id=str(oid)):
            try:
                await db.flush()
            except IntegrityError:
                raise ConflictError(
                    message="Another order already uses this Iqama number",
                    context={"order_id": str(oid)},
                )

        logger.info("Order %s patched (%d fields)", oid, len(columns) + len(extras))
        return OrderMutationResponse(message=message, order=to_response(order))

    async def patch_order_status(
        self, db: AsyncSession, order_id: str, fields: Dict[str, Any]
    ) -> OrderMutationResponse:
        """Status/OTP lifecycle update. Same mechanics as patch_order; any field is accepted."""
        return await self.patch_order(db, order_id, fields, message="Order status updated successfully")

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get_order(self, db: AsyncSession, order_id: str) -> OrderResponse:
        order = await self._load(db, parse_order_id(order_id))
        return to_response(order)

    async def list_orders(self, db: AsyncSession, page: int, limit: int) -> OrderListResponse:
        """
        One page of orders, newest orderDate first.

        skip = (page - 1) * limit, take = limit, totalPages = ceil(totalOrders / limit).

        Raises:
            ValidationError: page < 1, or limit outside 1..max_page_size
        """
        if page < 1:
            raise ValidationError(message="page must be 1 or greater", field="page")
        if limit < 1 or limit > settings.max_page_size:
            raise ValidationError(
                message=f"limit must be between 1 and {settings.max_page_size}",
                field="limit",
            )

        with _store_errors("order listing"):
            total = (await db.execute(select(func.count()).select_from(Order))).scalar_one()
            result = await db.execute(
                select(Order)
                .order_by(*RECENT_FIRST)
                .offset((page - 1) * limit)
                .limit(limit)
            )
            orders: Sequence[Order] = result.scalars().all()

        return OrderListResponse(
            totalOrders=total,
            totalPages=math.ceil(total / limit),
            currentPage=page,
            orders=[to_response(order) for order in orders],
        )

    async def search_by_iqama(self, db: AsyncSession, iqama: Optional[str]) -> OrderResponse:
        """
        The most recent order for an iqama.

        Raises:
            ValidationError: iqama missing or empty
            NotFoundError: no order carries this iqama
        """
        if not iqama:
            raise ValidationError(message="Iqama number is required", field="iqama")

        with _store_errors("order search"):
            result = await db.execute(
                select(Order).where(Order.iqama == iqama).order_by(*RECENT_FIRST).limit(1)
            )
            order = result.scalars().first()

        if order is None:
            raise NotFoundError(resource="order", message="No orders found for this Iqama number")
        return to_response(order)

    async def find_by_mobile(self, db: AsyncSession, mobile: str) -> List[OrderResponse]:
        """All orders for an exact mobile number, newest first; NotFoundError if none."""
        with _store_errors("order search"):
            result = await db.execute(
                select(Order).where(Order.mobile == mobile).order_by(*RECENT_FIRST)
            )
            orders = result.scalars().all()

        if not orders:
            raise NotFoundError(resource="order", message="No order found for this mobile number.")
        return [to_response(order) for order in orders]

    # ── Deletes ───────────────────────────────────────────────────────────

    async def delete_order(self, db: AsyncSession, order_id: str) -> DeleteResponse:
        """Delete exactly one order; NotFoundError when no row matched."""
        oid = parse_order_id(order_id)
        with _store_errors("order deletion", order_id=str(oid)):
            result = await db.execute(delete(Order).where(Order.id == oid))

        if result.rowcount == 0:
            raise NotFoundError(resource="order", resource_id=str(oid), message="Order not found")
        logger.info("Order %s deleted", oid)
        return DeleteResponse(message="Order deleted successfully", deletedCount=result.rowcount)

    async def delete_orders(self, db: AsyncSession, ids: List[str]) -> DeleteResponse:
        """
        Delete every order in `ids` with one statement.

        All ids are validated before anything is deleted: the first malformed
        id rejects the whole batch. Unknown (well-formed) ids are skipped and
        simply not counted.
        """
        if not ids:
            raise ValidationError(message="ids must contain at least one order id", field="ids")

        parsed = [parse_order_id(value, field="ids") for value in ids]
        unique_ids = list(dict.fromkeys(parsed))

        with _store_errors("bulk order deletion", count=len(unique_ids)):
            result = await db.execute(delete(Order).where(Order.id.in_(unique_ids)))

        logger.info("Bulk delete removed %d of %d orders", result.rowcount, len(unique_ids))
        return DeleteResponse(
            message=f"{result.rowcount} order(s) deleted successfully",
            deletedCount=result.rowcount,
        )


# ── Singleton Instance ────────────────────────────────────────────────────
order_service = OrderService()
