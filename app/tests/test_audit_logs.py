import pytest
from datetime import datetime

from sqlalchemy.future import select

from app.core.audit_log import append_audit_entry
from app.core.enums import AuditAction
from app.core.exceptions import AuditLogImmutableError
from app.models.audit import AdminAuditLog

pytestmark = pytest.mark.audit


async def write_entry(session_factory, booking_id, action=AuditAction.REPRICE, diff=None, note=None):
    async with session_factory() as session:
        entry = await append_audit_entry(
            session, booking_id, "admin_1", action,
            diff or {"final_price": {"old": 140.0, "new": 149.81}},
            note=note,
        )
        await session.commit()
        return entry.id


class TestAuditLogging:

    async def test_entry_structure(self, session_factory, create_booking_factory):
        booking_id = await create_booking_factory()
        entry_id = await write_entry(session_factory, booking_id, note="Quarterly rates")

        async with session_factory() as session:
            entry = await session.get(AdminAuditLog, entry_id)

        assert entry.booking_id == booking_id
        assert entry.admin_user_id == "admin_1"
        assert entry.action == AuditAction.REPRICE
        assert entry.diff_json == {"final_price": {"old": 140.0, "new": 149.81}}
        assert entry.note == "Quarterly rates"
        assert isinstance(entry.created_at, datetime)

    async def test_admin_id_stored_as_text(self, session_factory, create_booking_factory):
        booking_id = await create_booking_factory()
        async with session_factory() as session:
            entry = await append_audit_entry(session, booking_id, 42, AuditAction.EDIT, {"x": {"old": 1, "new": 2}})
            await session.commit()
        assert entry.admin_user_id == "42"

    async def test_action_types(self):
        assert [str(a) for a in AuditAction] == ["EDIT", "REPRICE", "CANCEL"]


class TestAuditImmutability:

    async def test_diff_cannot_be_changed(self, session_factory, create_booking_factory):
        booking_id = await create_booking_factory()
        entry_id = await write_entry(session_factory, booking_id)

        async with session_factory() as session:
            entry = await session.get(AdminAuditLog, entry_id)
            entry.diff_json = {"final_price": {"old": 140.0, "new": 1.0}}
            with pytest.raises(AuditLogImmutableError):
                await session.flush()
            await session.rollback()

        async with session_factory() as session:
            entry = await session.get(AdminAuditLog, entry_id)
            assert entry.diff_json["final_price"]["new"] == 149.81

    async def test_timestamp_cannot_be_changed(self, session_factory, create_booking_factory):
        booking_id = await create_booking_factory()
        entry_id = await write_entry(session_factory, booking_id)

        async with session_factory() as session:
            entry = await session.get(AdminAuditLog, entry_id)
            entry.created_at = datetime(2020, 1, 1)
            with pytest.raises(AuditLogImmutableError):
                await session.commit()

    async def test_entry_cannot_be_deleted(self, session_factory, create_booking_factory):
        booking_id = await create_booking_factory()
        entry_id = await write_entry(session_factory, booking_id)

        async with session_factory() as session:
            entry = await session.get(AdminAuditLog, entry_id)
            await session.delete(entry)
            with pytest.raises(AuditLogImmutableError):
                await session.flush()
            await session.rollback()

        async with session_factory() as session:
            assert await session.get(AdminAuditLog, entry_id) is not None

    async def test_new_entries_append(self, session_factory, create_booking_factory):
        booking_id = await create_booking_factory()
        first = await write_entry(session_factory, booking_id)
        second = await write_entry(
            session_factory, booking_id, action=AuditAction.CANCEL,
            diff={"status": {"old": "confirmed", "new": "cancelled"}}, note="Customer request",
        )

        async with session_factory() as session:
            res = await session.execute(
                select(AdminAuditLog).where(AdminAuditLog.booking_id == booking_id).order_by(AdminAuditLog.id)
            )
            entries = res.scalars().all()

        assert [e.id for e in entries] == [first, second]
        assert entries[0].diff_json == {"final_price": {"old": 140.0, "new": 149.81}}
