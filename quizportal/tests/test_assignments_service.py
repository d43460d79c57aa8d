"""
Tests for the Assignment Manager.
"""

import asyncio
import datetime

import pytest

from quizportal.common.events import TEST_ASSIGNED
from quizportal.common.exceptions import ConflictError, NotFoundError, ValidationError
from quizportal.domain.models import AssignmentPatch


class TestAssign:

    @pytest.mark.asyncio
    async def test_assign_dedupes_students_and_notifies_each(self, services, published_test, events):
        test = await published_test()

        assignment = await services.assignments.assign(
            test.id, ["s1", "s2", "s1", "  ", "s3 "], max_attempts=2, created_by="admin-1"
        )

        assert assignment.assigned_student_ids == frozenset({"s1", "s2", "s3"})
        assert assignment.max_attempts == 2
        assert assignment.is_active
        assert [e.payload["user_id"] for e in events.of_type(TEST_ASSIGNED)] == ["s1", "s2", "s3"]

    @pytest.mark.asyncio
    async def test_unpublished_test_cannot_be_assigned(self, services, published_test):
        draft = await published_test(is_published=False)

        with pytest.raises(ValidationError):
            await services.assignments.assign(draft.id, ["s1"])

    @pytest.mark.asyncio
    async def test_unknown_test(self, services):
        with pytest.raises(NotFoundError):
            await services.assignments.assign("missing", ["s1"])

    @pytest.mark.asyncio
    async def test_empty_student_list_rejected(self, services, published_test):
        test = await published_test()

        with pytest.raises(ValidationError) as exc_info:
            await services.assignments.assign(test.id, ["", "   "])

        assert "student_ids" in exc_info.value.errors

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_attempts", [0, -1])
    async def test_max_attempts_below_one_rejected(self, services, published_test, max_attempts):
        test = await published_test()

        with pytest.raises(ValidationError):
            await services.assignments.assign(test.id, ["s1"], max_attempts=max_attempts)

    @pytest.mark.asyncio
    async def test_past_due_date_allowed(self, services, published_test, clock):
        test = await published_test()
        yesterday = clock.now - datetime.timedelta(days=1)

        assignment = await services.assignments.assign(test.id, ["s1"], due_date=yesterday)

        assert assignment.due_date == yesterday
        assert assignment.is_overdue(clock.now)


class TestUpdateAssignment:

    @pytest.mark.asyncio
    async def test_add_and_remove_students(self, services, published_test, events):
        test = await published_test()
        assignment = await services.assignments.assign(test.id, ["s1", "s2"])

        updated = await services.assignments.update_assignment(
            assignment.id, AssignmentPatch(add_student_ids=["s3"], remove_student_ids=["s2"])
        )

        assert updated.assigned_student_ids == frozenset({"s1", "s3"})
        assert events.of_type(TEST_ASSIGNED)[-1].payload["user_id"] == "s3"

    @pytest.mark.asyncio
    async def test_student_with_result_cannot_be_removed(self, services, published_test, answers_for):
        test = await published_test()
        assignment = await services.assignments.assign(test.id, ["s1", "s2"])
        await services.attempts.submit(assignment.id, "s1", answers_for(test), 60)

        with pytest.raises(ConflictError):
            await services.assignments.update_assignment(
                assignment.id, AssignmentPatch(remove_student_ids=["s1"])
            )

        assert (await services.assignments.get_assignment(assignment.id)).is_assigned("s1")

    @pytest.mark.asyncio
    async def test_removing_every_student_rejected(self, services, published_test):
        test = await published_test()
        assignment = await services.assignments.assign(test.id, ["s1"])

        with pytest.raises(ValidationError):
            await services.assignments.update_assignment(
                assignment.id, AssignmentPatch(remove_student_ids=["s1"])
            )

    @pytest.mark.asyncio
    async def test_max_attempts_cannot_drop_below_attempts_made(self, services, published_test, answers_for, clock):
        test = await published_test()
        assignment = await services.assignments.assign(test.id, ["s1"], max_attempts=3)
        await services.attempts.submit(assignment.id, "s1", answers_for(test), 60)
        clock.advance(minutes=5)
        await services.attempts.submit(assignment.id, "s1", answers_for(test), 60)

        with pytest.raises(ConflictError):
            await services.assignments.update_assignment(assignment.id, AssignmentPatch(max_attempts=1))

        lowered = await services.assignments.update_assignment(assignment.id, AssignmentPatch(max_attempts=2))
        assert lowered.max_attempts == 2

    @pytest.mark.asyncio
    async def test_due_date_set_and_cleared(self, services, published_test, clock):
        test = await published_test()
        assignment = await services.assignments.assign(test.id, ["s1"])
        due = clock.now + datetime.timedelta(days=7)

        with_due = await services.assignments.update_assignment(assignment.id, AssignmentPatch(due_date=due))
        cleared = await services.assignments.update_assignment(assignment.id, AssignmentPatch(clear_due_date=True))

        assert with_due.due_date == due
        assert cleared.due_date is None

    @pytest.mark.asyncio
    async def test_unknown_assignment(self, services):
        with pytest.raises(NotFoundError):
            await services.assignments.update_assignment("missing", AssignmentPatch(max_attempts=2))


class TestReassignAndDeactivate:

    @pytest.mark.asyncio
    async def test_concurrent_reassign_loses_no_students(self, services, published_test):
        test = await published_test()
        assignment = await services.assignments.assign(test.id, ["s0"])

        await asyncio.gather(*(
            services.assignments.reassign(assignment.id, [f"s{i}"]) for i in range(1, 11)
        ))

        stored = await services.assignments.get_assignment(assignment.id)
        assert stored.assigned_student_ids == frozenset(f"s{i}" for i in range(11))

    @pytest.mark.asyncio
    async def test_reassign_keeps_existing_students(self, services, published_test, events):
        test = await published_test()
        assignment = await services.assignments.assign(test.id, ["s1"])

        updated = await services.assignments.reassign(assignment.id, ["s1", "s2"])

        assert updated.assigned_student_ids == frozenset({"s1", "s2"})
        assert [e.payload["user_id"] for e in events.of_type(TEST_ASSIGNED)] == ["s1", "s2"]

    @pytest.mark.asyncio
    async def test_deactivated_assignment_hidden_from_student(self, services, published_test):
        test = await published_test()
        assignment = await services.assignments.assign(test.id, ["s1"])

        await services.assignments.deactivate(assignment.id)

        assert await services.assignments.list_for_student("s1") == []
        assert len(await services.assignments.list_for_test(test.id)) == 1
        assert await services.assignments.list_for_test(test.id, include_inactive=False) == []


class TestOverlappingReassign:

    @pytest.fixture
    def assignment_repository(self, yielding_assignment_repository):
        return yielding_assignment_repository

    @pytest.mark.asyncio
    async def test_each_new_student_notified_once(self, services, published_test, events):
        test = await published_test()
        assignment = await services.assignments.assign(test.id, ["s1"])

        await asyncio.gather(
            services.assignments.reassign(assignment.id, ["s2", "s3"]),
            services.assignments.reassign(assignment.id, ["s3", "s4"]),
        )

        notified = sorted(e.payload["user_id"] for e in events.of_type(TEST_ASSIGNED))
        assert notified == ["s1", "s2", "s3", "s4"]
        stored = await services.assignments.get_assignment(assignment.id)
        assert stored.assigned_student_ids == frozenset({"s1", "s2", "s3", "s4"})
