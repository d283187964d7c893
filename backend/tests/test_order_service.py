"""
OrderDesk Backend — Order Service Unit Tests
==============================================

What:  Tests for OrderService against a real (in-memory SQLite) database.
How:   Each test gets a fresh schema from the db_session fixture; the
       driver-failure tests use the mock session instead.

What we test:
    ✅ Submit creates, resubmitting the same iqama updates the same order
    ✅ Resubmitted nulls and nested objects replace stored values whole
    ✅ orderDate offsets are normalised to UTC before sorting
    ✅ iqamaNumber is accepted as an alias of iqama
    ✅ Patches merge arbitrary fields; unknown ids raise NotFoundError
    ✅ Page-number pagination ordered by orderDate descending
    ✅ Search returns the latest order; misses raise NotFoundError
    ✅ Single delete and all-or-nothing bulk delete
    ✅ Driver errors surface as DatabaseError
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from orderdesk.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from orderdesk.models.order import Order
from orderdesk.services.order_service import (
    OrderService,
    parse_order_id,
    split_fields,
)


async def _count(db) -> int:
    return (await db.execute(select(func.count()).select_from(Order))).scalar_one()


class TestSubmitOrder:
    """Tests for create-or-update by iqama."""

    def setup_method(self):
        self.service = OrderService()

    @pytest.mark.asyncio
    async def test_fresh_iqama_creates_one_order(self, db_session, make_submission, order_document):
        result = await self.service.submit_order(db_session, make_submission(**order_document))

        assert result.status == "created"
        assert result.order.iqama == "2456789012"
        assert result.order.city == "Riyadh"
        assert await _count(db_session) == 1

    @pytest.mark.asyncio
    async def test_same_iqama_updates_existing_order(self, db_session, make_submission, order_document):
        first = await self.service.submit_order(db_session, make_submission(**order_document))
        second = await self.service.submit_order(
            db_session,
            make_submission(iqama=order_document["iqama"], name="Abdullah Saleh", paid=True),
        )

        assert second.status == "updated"
        assert second.order.id == first.order.id
        assert await _count(db_session) == 1

        order = second.order.model_dump()
        # Submitted fields overwrite, the rest of the stored document survives
        assert order["name"] == "Abdullah Saleh"
        assert order["paid"] is True
        assert order["city"] == "Riyadh"
        assert order["mobile"] == "0551234567"

    @pytest.mark.asyncio
    async def test_iqama_number_alias(self, db_session, make_submission):
        await self.service.submit_order(db_session, make_submission(iqamaNumber="1111", name="A"))
        second = await self.service.submit_order(db_session, make_submission(iqama="1111", name="B"))

        assert second.status == "updated"
        assert await _count(db_session) == 1
        assert "iqamaNumber" not in second.order.model_dump()

    @pytest.mark.asyncio
    async def test_orders_without_iqama_are_always_inserted(self, db_session, make_submission):
        await self.service.submit_order(db_session, make_submission(mobile="050", note="walk-in"))
        result = await self.service.submit_order(db_session, make_submission(mobile="050", note="walk-in"))

        assert result.status == "created"
        assert await _count(db_session) == 2

    @pytest.mark.asyncio
    async def test_resubmitted_null_overwrites_stored_value(self, db_session, make_submission):
        await self.service.submit_order(db_session, make_submission(iqama="9", otp="1234"))
        result = await self.service.submit_order(db_session, make_submission(iqama="9", otp=None))

        order = result.order.model_dump()
        assert "otp" in order
        assert order["otp"] is None

    @pytest.mark.asyncio
    async def test_resubmitted_nested_object_replaces_whole_value(self, db_session, make_submission):
        await self.service.submit_order(
            db_session, make_submission(iqama="9", address={"city": "Riyadh", "street": "A"})
        )
        result = await self.service.submit_order(
            db_session, make_submission(iqama="9", address={"city": "Jeddah"})
        )

        assert result.order.model_dump()["address"] == {"city": "Jeddah"}

    @pytest.mark.asyncio
    async def test_system_fields_in_payload_are_ignored(self, db_session, make_submission):
        forged = str(uuid.uuid4())
        result = await self.service.submit_order(db_session, make_submission(id=forged, name="X"))

        assert str(result.order.id) != forged


class TestPatchOrder:
    """Tests for patch_order / patch_order_status."""

    def setup_method(self):
        self.service = OrderService()

    @pytest.mark.asyncio
    async def test_patch_merges_arbitrary_fields(self, db_session, make_submission, order_document):
        created = await self.service.submit_order(db_session, make_submission(**order_document))

        result = await self.service.patch_order(
            db_session, str(created.order.id), {"city": "Jeddah", "giftWrap": True}
        )

        order = result.order.model_dump()
        assert order["city"] == "Jeddah"
        assert order["giftWrap"] is True
        assert order["name"] == "Abdullah"

    @pytest.mark.asyncio
    async def test_patch_status_sets_otp_fields(self, db_session, make_submission, order_document):
        created = await self.service.submit_order(db_session, make_submission(**order_document))

        result = await self.service.patch_order_status(
            db_session, str(created.order.id), {"otp": "4821", "status": "otp_sent"}
        )

        assert result.message == "Order status updated successfully"
        assert result.order.model_dump()["status"] == "otp_sent"

    @pytest.mark.asyncio
    async def test_patch_unknown_id_raises_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.patch_order(db_session, str(uuid.uuid4()), {"city": "Dammam"})

    @pytest.mark.asyncio
    async def test_patch_malformed_id_raises_validation_error(self, db_session):
        with pytest.raises(ValidationError):
            await self.service.patch_order(db_session, "not-an-id", {"city": "Dammam"})

    @pytest.mark.asyncio
    async def test_patch_to_taken_iqama_raises_conflict(self, db_session, make_submission):
        await self.service.submit_order(db_session, make_submission(iqama="1"))
        other = await self.service.submit_order(db_session, make_submission(iqama="2"))

        with pytest.raises(ConflictError):
            await self.service.patch_order(db_session, str(other.order.id), {"iqama": "1"})


class TestListOrders:
    """Tests for page-number pagination."""

    def setup_method(self):
        self.service = OrderService()

    async def _seed(self, db, make_submission, count: int) -> None:
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        for seq in range(count):
            await self.service.submit_order(
                db,
                make_submission(orderDate=(base + timedelta(days=seq)).isoformat(), seq=seq),
            )

    @pytest.mark.asyncio
    async def test_second_page_of_twenty_five(self, db_session, make_submission):
        await self._seed(db_session, make_submission, 25)

        result = await self.service.list_orders(db_session, page=2, limit=10)

        assert result.totalOrders == 25
        assert result.totalPages == 3
        assert result.currentPage == 2
        # Records 11-20 counted from the newest (seq 24)
        assert [o.model_dump()["seq"] for o in result.orders] == list(range(14, 4, -1))

    @pytest.mark.asyncio
    async def test_last_page_is_partial(self, db_session, make_submission):
        await self._seed(db_session, make_submission, 25)

        result = await self.service.list_orders(db_session, page=3, limit=10)

        assert len(result.orders) == 5

    @pytest.mark.asyncio
    async def test_empty_collection(self, db_session):
        result = await self.service.list_orders(db_session, page=1, limit=10)

        assert result.totalOrders == 0
        assert result.totalPages == 0
        assert result.orders == []

    @pytest.mark.asyncio
    async def test_dates_with_different_offsets_sort_by_instant(self, db_session, make_submission):
        # 10:00+03:00 is 07:00Z, earlier than 08:00Z
        await self.service.submit_order(
            db_session, make_submission(mobile="0501", orderDate="2026-05-01T10:00:00+03:00", tag="riyadh")
        )
        await self.service.submit_order(
            db_session, make_submission(mobile="0501", orderDate="2026-05-01T08:00:00+00:00", tag="utc")
        )

        listed = await self.service.list_orders(db_session, page=1, limit=10)
        by_mobile = await self.service.find_by_mobile(db_session, "0501")

        assert [o.model_dump()["tag"] for o in listed.orders] == ["utc", "riyadh"]
        assert [o.model_dump()["tag"] for o in by_mobile] == ["utc", "riyadh"]
        assert listed.orders[1].orderDate == datetime(2026, 5, 1, 7, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (1, -5), (-1, 10)])
    async def test_out_of_range_paging_rejected(self, db_session, page, limit):
        with pytest.raises(ValidationError):
            await self.service.list_orders(db_session, page=page, limit=limit)


class TestLookups:
    """Tests for search_by_iqama, find_by_mobile and get_order."""

    def setup_method(self):
        self.service = OrderService()

    @pytest.mark.asyncio
    async def test_search_returns_order(self, db_session, make_submission, order_document):
        await self.service.submit_order(db_session, make_submission(**order_document))

        result = await self.service.search_by_iqama(db_session, "2456789012")

        assert result.mobile == "0551234567"

    @pytest.mark.asyncio
    async def test_search_without_match_raises_not_found(self, db_session):
        with pytest.raises(NotFoundError, match="No orders found"):
            await self.service.search_by_iqama(db_session, "0000000000")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("iqama", [None, ""])
    async def test_search_requires_iqama(self, db_session, iqama):
        with pytest.raises(ValidationError, match="required"):
            await self.service.search_by_iqama(db_session, iqama)

    @pytest.mark.asyncio
    async def test_find_by_mobile_newest_first(self, db_session, make_submission):
        await self.service.submit_order(
            db_session, make_submission(mobile="0559", orderDate="2026-01-01T00:00:00+00:00", n=1)
        )
        await self.service.submit_order(
            db_session, make_submission(mobile="0559", orderDate="2026-02-01T00:00:00+00:00", n=2)
        )
        await self.service.submit_order(db_session, make_submission(mobile="0500", n=3))

        result = await self.service.find_by_mobile(db_session, "0559")

        assert [o.model_dump()["n"] for o in result] == [2, 1]

    @pytest.mark.asyncio
    async def test_find_by_mobile_without_match_raises_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.find_by_mobile(db_session, "0000")

    @pytest.mark.asyncio
    async def test_get_order_round_trip(self, db_session, make_submission, order_document):
        created = await self.service.submit_order(db_session, make_submission(**order_document))

        fetched = await self.service.get_order(db_session, str(created.order.id))

        assert fetched.id == created.order.id


class TestDeleteOrders:
    """Tests for single and bulk deletion."""

    def setup_method(self):
        self.service = OrderService()

    @pytest.mark.asyncio
    async def test_delete_existing_removes_exactly_that_order(self, db_session, make_submission):
        keep = await self.service.submit_order(db_session, make_submission(iqama="1"))
        drop = await self.service.submit_order(db_session, make_submission(iqama="2"))

        await self.service.delete_order(db_session, str(drop.order.id))

        assert await _count(db_session) == 1
        assert (await self.service.get_order(db_session, str(keep.order.id))).iqama == "1"

    @pytest.mark.asyncio
    async def test_delete_unknown_id_leaves_collection_unchanged(self, db_session, make_submission):
        await self.service.submit_order(db_session, make_submission(iqama="1"))

        with pytest.raises(NotFoundError):
            await self.service.delete_order(db_session, str(uuid.uuid4()))
        assert await _count(db_session) == 1

    @pytest.mark.asyncio
    async def test_bulk_delete_with_malformed_id_deletes_nothing(self, db_session, make_submission):
        first = await self.service.submit_order(db_session, make_submission(iqama="1"))

        with pytest.raises(ValidationError, match="not-an-id"):
            await self.service.delete_orders(db_session, [str(first.order.id), "not-an-id"])
        assert await _count(db_session) == 1

    @pytest.mark.asyncio
    async def test_bulk_delete_reports_count(self, db_session, make_submission):
        a = await self.service.submit_order(db_session, make_submission(iqama="1"))
        b = await self.service.submit_order(db_session, make_submission(iqama="2"))
        await self.service.submit_order(db_session, make_submission(iqama="3"))

        result = await self.service.delete_orders(db_session, [str(a.order.id), str(b.order.id)])

        assert result.deletedCount == 2
        assert await _count(db_session) == 1

    @pytest.mark.asyncio
    async def test_bulk_delete_empty_list_rejected(self, db_session):
        with pytest.raises(ValidationError):
            await self.service.delete_orders(db_session, [])


class TestStoreFailures:
    """Driver errors are wrapped, never leaked."""

    def setup_method(self):
        self.service = OrderService()

    @pytest.mark.asyncio
    async def test_list_orders_wraps_driver_error(self, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("connection reset"))

        with pytest.raises(DatabaseError) as exc_info:
            await self.service.list_orders(mock_db_session, page=1, limit=10)
        assert "connection reset" not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_delete_order_wraps_driver_error(self, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("DELETE", {}, Exception("deadlock"))

        with pytest.raises(DatabaseError):
            await self.service.delete_order(mock_db_session, str(uuid.uuid4()))


class TestFieldHelpers:

    def test_split_fields_routes_typed_keys(self):
        columns, extras = split_fields(
            {"iqamaNumber": 123, "mobile": "050", "orderDate": "2026-01-01T00:00:00Z", "x": 1, "_id": "y"}
        )

        assert columns["iqama"] == "123"
        assert columns["mobile"] == "050"
        assert columns["order_date"].year == 2026
        assert extras == {"x": 1}

    def test_split_fields_rejects_bad_order_date(self):
        with pytest.raises(ValidationError, match="orderDate"):
            split_fields({"orderDate": "next tuesday"})

    def test_parse_order_id(self):
        oid = uuid.uuid4()
        assert parse_order_id(str(oid)) == oid
        with pytest.raises(ValidationError):
            parse_order_id("validid1")

    def test_split_fields_converts_order_date_to_utc(self):
        columns, _ = split_fields({"orderDate": "2026-05-01T10:00:00+03:00"})

        assert columns["order_date"] == datetime(2026, 5, 1, 7, 0, tzinfo=timezone.utc)
        assert columns["order_date"].utcoffset() == timedelta(0)

    def test_split_fields_treats_naive_order_date_as_utc(self):
        columns, _ = split_fields({"orderDate": "2026-05-01T10:00:00"})

        assert columns["order_date"].tzinfo == timezone.utc

    @pytest.mark.parametrize(
        "fields",
        [{"iqama": "1" * 65}, {"iqamaNumber": "1" * 65}, {"mobile": "5" * 33}],
    )
    def test_split_fields_rejects_over_long_keys(self, fields):
        with pytest.raises(ValidationError, match="at most"):
            split_fields(fields)
