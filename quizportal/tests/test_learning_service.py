"""
Tests for the learning module service.
"""

import asyncio
import datetime

import pytest

from quizportal.common.events import MODULE_ASSIGNED
from quizportal.common.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from quizportal.learning.service import DESCRIPTION_MAX_LENGTH, TITLE_MAX_LENGTH


@pytest.fixture
def make_module(services):
    async def _make(title="Risk management", description="Position sizing and stops"):
        return await services.modules.create_module(title, description, created_by="admin")
    return _make


class TestModuleAuthoring:

    @pytest.mark.asyncio
    async def test_create_strips_and_stores(self, services):
        module = await services.modules.create_module("  Candlesticks ", " Reading patterns ", created_by="admin")

        assert (module.title, module.description) == ("Candlesticks", "Reading patterns")
        assert await services.modules.get_module(module.id) == module

    @pytest.mark.asyncio
    async def test_every_violation_reported(self, services):
        with pytest.raises(ValidationError) as excinfo:
            await services.modules.create_module("  ", "x" * (DESCRIPTION_MAX_LENGTH + 1))

        assert set(excinfo.value.errors) == {"title", "description"}
        assert await services.modules.list_modules() == []

    @pytest.mark.asyncio
    async def test_update_keeps_untouched_fields(self, services, make_module, clock):
        module = await make_module()
        clock.advance(hours=1)

        updated = await services.modules.update_module(module.id, title="Risk 101")

        assert updated.title == "Risk 101"
        assert updated.description == module.description
        assert updated.updated_at == clock.now

    @pytest.mark.asyncio
    async def test_update_rejects_long_title(self, services, make_module):
        module = await make_module()

        with pytest.raises(ValidationError):
            await services.modules.update_module(module.id, title="x" * (TITLE_MAX_LENGTH + 1))

        assert (await services.modules.get_module(module.id)).title == module.title

    @pytest.mark.asyncio
    async def test_unknown_module(self, services):
        with pytest.raises(NotFoundError):
            await services.modules.update_module("missing", title="Anything")


class TestAssignModule:

    @pytest.mark.asyncio
    async def test_assign_again_adds_students(self, services, make_module, events, clock):
        module = await make_module()
        due = clock.now + datetime.timedelta(days=7)
        first = await services.modules.assign_module(module.id, ["s1", " s2 ", "s1"])

        second = await services.modules.assign_module(module.id, ["s2", "s3"], due_date=due)

        assert second.id == first.id
        assert second.assigned_student_ids == frozenset({"s1", "s2", "s3"})
        assert second.due_date == due
        assert [e.payload["user_id"] for e in events.of_type(MODULE_ASSIGNED)] == ["s1", "s2", "s3"]

    @pytest.mark.asyncio
    async def test_concurrent_assigns_notify_each_student_once(self, services, make_module, events):
        module = await make_module()
        await services.modules.assign_module(module.id, ["s1"])

        await asyncio.gather(
            services.modules.assign_module(module.id, ["s2", "s3"]),
            services.modules.assign_module(module.id, ["s3", "s4"]),
        )

        notified = sorted(e.payload["user_id"] for e in events.of_type(MODULE_ASSIGNED))
        assert notified == ["s1", "s2", "s3", "s4"]

    @pytest.mark.asyncio
    async def test_deactivated_assignment_not_reused(self, services, make_module):
        module = await make_module()
        old = await services.modules.assign_module(module.id, ["s1"])
        await services.modules.deactivate_assignment(old.id)

        new = await services.modules.assign_module(module.id, ["s1"])

        assert new.id != old.id
        assert [a.id for a in await services.modules.list_assignments_for_module(module.id)] == [old.id, new.id]

    @pytest.mark.asyncio
    async def test_no_students(self, services, make_module):
        module = await make_module()

        with pytest.raises(ValidationError):
            await services.modules.assign_module(module.id, [" ", ""])

    @pytest.mark.asyncio
    async def test_unknown_module(self, services):
        with pytest.raises(NotFoundError):
            await services.modules.assign_module("missing", ["s1"])


class TestMarkComplete:

    @pytest.mark.asyncio
    async def test_completion_recorded_once(self, services, make_module, clock):
        module = await make_module()
        assignment = await services.modules.assign_module(module.id, ["s1", "s2"])
        clock.advance(days=2)

        updated = await services.modules.mark_complete(assignment.id, "s1")

        assert updated.completions == {"s1": clock.now}
        with pytest.raises(ConflictError):
            await services.modules.mark_complete(assignment.id, "s1")

    @pytest.mark.asyncio
    async def test_unassigned_student_rejected(self, services, make_module):
        module = await make_module()
        assignment = await services.modules.assign_module(module.id, ["s1"])

        with pytest.raises(ForbiddenError):
            await services.modules.mark_complete(assignment.id, "s9")

    @pytest.mark.asyncio
    async def test_inactive_assignment_rejected(self, services, make_module):
        module = await make_module()
        assignment = await services.modules.assign_module(module.id, ["s1"])
        await services.modules.deactivate_assignment(assignment.id)

        with pytest.raises(NotFoundError):
            await services.modules.mark_complete(assignment.id, "s1")

    @pytest.mark.asyncio
    async def test_unknown_assignment(self, services):
        with pytest.raises(NotFoundError):
            await services.modules.mark_complete("missing", "s1")


class TestStudentModules:

    @pytest.mark.asyncio
    async def test_status_and_overdue(self, services, make_module, clock):
        done = await make_module(title="Charting")
        late = await make_module(title="Hedging")
        due = clock.now + datetime.timedelta(days=1)
        first = await services.modules.assign_module(done.id, ["s1"], due_date=due)
        clock.advance(minutes=1)
        second = await services.modules.assign_module(late.id, ["s1"], due_date=due)
        await services.modules.mark_complete(first.id, "s1")
        clock.advance(days=2)

        modules = await services.modules.list_for_student("s1")

        assert [m.assignment_id for m in modules] == [second.id, first.id]
        assert [(m.status, m.is_overdue) for m in modules] == [("assigned", True), ("completed", False)]
        assert modules[0].to_dict()["module"]["title"] == "Hedging"

    @pytest.mark.asyncio
    async def test_inactive_assignments_hidden(self, services, make_module):
        module = await make_module()
        assignment = await services.modules.assign_module(module.id, ["s1"])

        await services.modules.deactivate_assignment(assignment.id)

        assert await services.modules.list_for_student("s1") == []
        assert len(await services.modules.list_assignments_for_module(module.id)) == 1
