"""
Tests for the Test Definition Store.
"""

import pytest

from quizportal.common.exceptions import NotFoundError, ValidationError
from quizportal.domain.models import OptionDraft, QuestionDraft, TestPatch


class TestCreateTest:

    @pytest.mark.asyncio
    async def test_total_points_derived_from_questions(self, services, make_draft):
        test = await services.catalog.create_test(make_draft(points=(2, 1, 4)))

        assert test.total_points == 7
        assert test.total_questions == 3
        assert test.is_published
        assert all(q.id and all(o.id for o in q.options) for q in test.questions)

    @pytest.mark.asyncio
    async def test_invalid_draft_is_not_stored(self, services, make_draft):
        draft = make_draft()
        draft.questions[0].options[1].is_correct = True

        with pytest.raises(ValidationError) as exc_info:
            await services.catalog.create_test(draft)

        assert "questions[0].options" in exc_info.value.errors
        assert await services.catalog.list_tests() == []

    @pytest.mark.asyncio
    async def test_list_published_only(self, services, make_draft):
        await services.catalog.create_test(make_draft(title="Draft", is_published=False))
        published = await services.catalog.create_test(make_draft(title="Live"))

        assert [t.id for t in await services.catalog.list_tests(published_only=True)] == [published.id]
        assert len(await services.catalog.list_tests()) == 2


class TestUpdateTest:

    @pytest.mark.asyncio
    async def test_draft_questions_replaced_and_points_recomputed(self, services, make_draft):
        draft = await services.catalog.create_test(make_draft(is_published=False))
        kept = draft.questions[0]

        updated = await services.catalog.update_test(draft.id, TestPatch(questions=[
            QuestionDraft(
                id=kept.id,
                text="Reworded",
                points=5,
                options=[OptionDraft(id=o.id, text=o.text, is_correct=o.is_correct) for o in kept.options],
            ),
        ]))

        assert updated.total_points == 5
        assert updated.questions[0].id == kept.id
        assert updated.questions[0].text == "Reworded"

    @pytest.mark.asyncio
    async def test_update_that_breaks_rules_keeps_previous_version(self, services, make_draft):
        draft = await services.catalog.create_test(make_draft(is_published=False))

        with pytest.raises(ValidationError):
            await services.catalog.update_test(draft.id, TestPatch(time_limit_minutes=1))

        assert (await services.catalog.get_test(draft.id)).time_limit_minutes == 30

    @pytest.mark.asyncio
    async def test_published_questions_are_frozen(self, services, make_draft):
        test = await services.catalog.create_test(make_draft())

        with pytest.raises(ValidationError):
            await services.catalog.update_test(test.id, TestPatch(time_limit_minutes=60))

    @pytest.mark.asyncio
    async def test_published_descriptive_fields_editable(self, services, make_draft):
        test = await services.catalog.create_test(make_draft())

        updated = await services.catalog.update_test(test.id, TestPatch(title="Algebra I", instructions="Take your time"))

        assert updated.title == "Algebra I"
        assert updated.instructions == "Take your time"
        assert updated.questions == test.questions

    @pytest.mark.asyncio
    async def test_unknown_test(self, services):
        with pytest.raises(NotFoundError):
            await services.catalog.update_test("missing", TestPatch(title="x"))


class TestPublish:

    @pytest.mark.asyncio
    async def test_publish_is_idempotent(self, services, make_draft):
        draft = await services.catalog.create_test(make_draft(is_published=False))

        first = await services.catalog.publish(draft.id)
        second = await services.catalog.publish(draft.id)

        assert first.is_published
        assert second == first

    @pytest.mark.asyncio
    async def test_publish_unknown_test(self, services):
        with pytest.raises(NotFoundError) as exc_info:
            await services.catalog.publish("missing")

        assert exc_info.value.message == "Test not found"
