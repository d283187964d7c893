"""
OrderDesk Backend — Order SQLAlchemy Model
============================================

What:  ORM model representing the `orders` table.
How:   A typed record for the fields the service queries on (iqama, mobile,
       order_date) plus a JSON `attributes` map for every other field a
       client submits. PostgreSQL stores the map as JSONB, SQLite as JSON text.

Table Design:
    - id: UUID primary key, assigned in Python so Core inserts get one too
    - iqama: UNIQUE business key; NULLs allowed (orders without an iqama
      are plain inserts and never collide)
    - revision: 1 on insert, incremented by each business-key upsert;
      RETURNING revision tells the caller whether the upsert created the row
    - order_date DESC index: serves the listing and "latest order" queries
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Uuid, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from orderdesk.database import Base

# Portable JSON column: JSONB on PostgreSQL (supports the || merge operator)
JSONMap = JSON().with_variant(JSONB(), "postgresql")

IQAMA_MAX_LENGTH = 64
MOBILE_MAX_LENGTH = 32


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Order(Base):
    """
    A customer order.

    Lifecycle:
        1. Created by POST /orders (insert, or upsert keyed on iqama)
        2. Mutated by PATCH /order-update/{id} and PATCH /order-status/{id}
        3. Deleted individually or in bulk by id

    Query Patterns:
        - Upsert by iqama: INSERT ... ON CONFLICT (iqama) DO UPDATE
        - Latest order for an iqama / mobile: WHERE ... ORDER BY order_date DESC
        - Paginated listing: ORDER BY order_date DESC OFFSET :skip LIMIT :limit
    """

    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="System-assigned order identifier",
    )

    iqama: Mapped[Optional[str]] = mapped_column(
        String(IQAMA_MAX_LENGTH),
        nullable=True,
        unique=True,
        comment="Customer identity number; at most one order per value",
    )

    mobile: Mapped[Optional[str]] = mapped_column(
        String(MOBILE_MAX_LENGTH),
        nullable=True,
        index=True,
        comment="Customer phone number, exact-match lookup key",
    )

    order_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the customer placed the order; listing sort key",
    )

    attributes: Mapped[Dict[str, Any]] = mapped_column(
        JSONMap,
        nullable=False,
        default=dict,
        comment="Every submitted field without a dedicated column",
    )

    revision: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default=text("1"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    __table_args__ = (
        Index("idx_orders_order_date", order_date.desc()),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, iqama='{self.iqama}', revision={self.revision})>"
