"""
Tests for the Analytics Aggregator.
"""

import datetime

import pytest

from quizportal.analytics.service import score_bucket, trend_of
from quizportal.common.exceptions import NotFoundError


@pytest.fixture
def submit(services, answers_for, clock):
    """Submit an attempt and move the clock on so results have distinct times."""
    async def _submit(assignment, user_id, test, correct):
        result = await services.attempts.submit(assignment.id, user_id, answers_for(test, correct), 60)
        clock.advance(minutes=1)
        return result
    return _submit


class TestTestSummary:

    @pytest.mark.asyncio
    async def test_no_assigned_students(self, services, published_test):
        test = await published_test()

        summary = await services.analytics.test_summary(test.id)

        assert summary.assigned_count == 0
        assert summary.completion_rate == 0.0
        assert summary.average_score == 0.0

    @pytest.mark.asyncio
    async def test_latest_attempt_counts(self, services, published_test, submit):
        # 10 one-point questions so 6 and 9 correct give 60% and 90%
        test = await published_test(points=(1,) * 10)
        assignment = await services.assignments.assign(test.id, ["s1", "s2", "s3"], max_attempts=2)

        await submit(assignment, "s1", test, [True] * 6 + [False] * 4)
        await submit(assignment, "s1", test, [True] * 9 + [False])

        summary = await services.analytics.test_summary(test.id)

        assert summary.assigned_count == 3
        assert summary.completed_count == 1
        assert summary.completion_rate == 33.3
        assert summary.average_score == 90.0

    @pytest.mark.asyncio
    async def test_students_across_assignments_counted_once(self, services, published_test, submit):
        test = await published_test(points=(1, 1))
        first = await services.assignments.assign(test.id, ["s1", "s2"])
        second = await services.assignments.assign(test.id, ["s2", "s3"])

        await submit(first, "s1", test, [True, True])
        await submit(second, "s2", test, [True, False])

        summary = await services.analytics.test_summary(test.id)

        assert summary.assigned_count == 3
        assert summary.completed_count == 2
        assert summary.completion_rate == 66.7
        assert summary.average_score == 75.0

    @pytest.mark.asyncio
    async def test_deactivated_assignment_still_counts(self, services, published_test, submit):
        test = await published_test(points=(1,))
        assignment = await services.assignments.assign(test.id, ["s1"])
        await submit(assignment, "s1", test, [True])
        await services.assignments.deactivate(assignment.id)

        summary = await services.analytics.test_summary(test.id)

        assert summary.completed_count == 1
        assert summary.completion_rate == 100.0

    @pytest.mark.asyncio
    async def test_unknown_test(self, services):
        with pytest.raises(NotFoundError):
            await services.analytics.test_summary("missing")


class TestTopPerformers:

    @pytest.mark.asyncio
    async def test_ranking_and_tie_breaks(self, services, published_test, submit):
        test_a = await published_test(points=(1, 1), title="A")
        test_b = await published_test(points=(1, 1), title="B")
        on_a = await services.assignments.assign(test_a.id, ["amy", "bob", "cat", "dan"])
        on_b = await services.assignments.assign(test_b.id, ["amy", "bob"])

        await submit(on_a, "amy", test_a, [True, True])
        await submit(on_b, "amy", test_b, [True, True])
        await submit(on_a, "bob", test_a, [True, True])
        await submit(on_b, "bob", test_b, [True, True])
        await submit(on_a, "dan", test_a, [True, True])
        await submit(on_a, "cat", test_a, [True, False])

        performers = await services.analytics.top_performers()

        assert [(p.user_id, p.average_score, p.tests_completed) for p in performers] == [
            ("amy", 100.0, 2),
            ("bob", 100.0, 2),
            ("dan", 100.0, 1),
            ("cat", 50.0, 1),
        ]

    @pytest.mark.asyncio
    async def test_limit_and_minimum_tests(self, services, published_test, submit):
        test_a = await published_test(points=(1,), title="A")
        test_b = await published_test(points=(1,), title="B")
        on_a = await services.assignments.assign(test_a.id, ["s1", "s2"])
        on_b = await services.assignments.assign(test_b.id, ["s1"])
        await submit(on_a, "s1", test_a, [False])
        await submit(on_b, "s1", test_b, [True])
        await submit(on_a, "s2", test_a, [True])

        assert [p.user_id for p in await services.analytics.top_performers(limit=1)] == ["s2"]
        assert [p.user_id for p in await services.analytics.top_performers(min_tests_completed=2)] == ["s1"]


class TestPendingForTest:

    @pytest.mark.asyncio
    async def test_pending_students_and_overdue_flag(self, services, published_test, submit, clock):
        test = await published_test(points=(1,))
        due = clock.now + datetime.timedelta(days=1)
        assignment = await services.assignments.assign(test.id, ["s3", "s1", "s2"], due_date=due)
        await submit(assignment, "s2", test, [True])

        before = await services.analytics.pending_for_test(test.id)
        after = await services.analytics.pending_for_test(test.id, now=due + datetime.timedelta(seconds=1))

        assert [(p.user_id, p.is_overdue) for p in before] == [("s1", False), ("s3", False)]
        assert [(p.user_id, p.is_overdue) for p in after] == [("s1", True), ("s3", True)]

    @pytest.mark.asyncio
    async def test_most_lenient_due_date_wins(self, services, published_test, clock):
        test = await published_test(points=(1,))
        await services.assignments.assign(test.id, ["s1"], due_date=clock.now - datetime.timedelta(days=1))
        await services.assignments.assign(test.id, ["s1"])

        [pending] = await services.analytics.pending_for_test(test.id)

        assert pending.due_date is None
        assert not pending.is_overdue


class TestDetailedAnalytics:

    @pytest.mark.asyncio
    async def test_test_analytics(self, services, published_test, submit):
        test = await published_test(points=(1, 1, 1, 1, 1))
        assignment = await services.assignments.assign(test.id, ["s1", "s2", "s3"], max_attempts=2)
        await submit(assignment, "s1", test, [True] * 5)
        await submit(assignment, "s2", test, [True, True, True, False, False])
        await submit(assignment, "s3", test, [False] * 5)
        await submit(assignment, "s3", test, [True, False, False, False, False])

        analytics = await services.analytics.test_analytics(test.id)

        assert analytics.total_attempts == 4
        assert analytics.unique_students == 3
        assert analytics.pass_rate == 66.7
        assert analytics.score_distribution == {"0-20": 1, "21-40": 0, "41-60": 1, "61-80": 0, "81-100": 1}
        assert analytics.highest_score == 100.0
        assert analytics.lowest_score == 20.0
        first_question = analytics.question_accuracy[0]
        assert (first_question.attempts, first_question.correct, first_question.accuracy) == (4, 3, 75.0)

    @pytest.mark.asyncio
    async def test_student_performance_trend(self, services, published_test, submit):
        test = await published_test(points=(1, 1, 1, 1))
        assignment = await services.assignments.assign(test.id, ["s1"], max_attempts=6)
        for correct in (1, 1, 1, 4, 4, 4):
            await submit(assignment, "s1", test, [True] * correct + [False] * (4 - correct))

        performance = await services.analytics.student_performance("s1")

        assert performance.assigned_tests == 1
        assert performance.completed_tests == 1
        assert performance.total_attempts == 6
        assert performance.average_score == 100.0
        assert performance.recent_scores == (100.0, 100.0, 100.0, 25.0, 25.0)
        assert performance.trend == "improving"

    @pytest.mark.asyncio
    async def test_portfolio_summary(self, services, published_test, submit):
        test = await published_test(points=(1,))
        await published_test(points=(1,), is_published=False)
        assignment = await services.assignments.assign(test.id, ["s1", "s2"])
        await submit(assignment, "s1", test, [True])

        summary = await services.analytics.portfolio_summary()

        assert (summary.total_tests, summary.published_tests) == (2, 1)
        assert (summary.assigned_pairs, summary.completed_pairs) == (2, 1)
        assert summary.completion_rate == 50.0
        assert summary.average_score == 100.0


class TestModuleAnalytics:

    @pytest.mark.asyncio
    async def test_completion_statistics(self, services, clock):
        module = await services.modules.create_module("Hedging", "Protective puts")
        assignment = await services.modules.assign_module(
            module.id, ["s1", "s2", "s3"], due_date=clock.now + datetime.timedelta(days=3)
        )
        clock.advance(days=1)
        await services.modules.mark_complete(assignment.id, "s1")
        clock.advance(days=1)
        await services.modules.mark_complete(assignment.id, "s2")
        clock.advance(days=3)

        analytics = await services.analytics.module_analytics(module.id)

        assert (analytics.assignment_count, analytics.assigned_count, analytics.completed_count) == (1, 3, 2)
        assert analytics.completion_rate == 66.7
        assert analytics.average_completion_days == 1.5
        assert analytics.overdue_count == 1

    @pytest.mark.asyncio
    async def test_unassigned_module(self, services):
        module = await services.modules.create_module("Hedging", "Protective puts")

        analytics = await services.analytics.module_analytics(module.id)

        assert (analytics.assigned_count, analytics.completion_rate, analytics.overdue_count) == (0, 0.0, 0)
        assert analytics.average_completion_days == 0.0

    @pytest.mark.asyncio
    async def test_unknown_module(self, services):
        with pytest.raises(NotFoundError):
            await services.analytics.module_analytics("missing")

    @pytest.mark.asyncio
    async def test_student_and_portfolio_module_counts(self, services):
        first = await services.modules.create_module("Hedging", "Protective puts")
        second = await services.modules.create_module("Charting", "Support and resistance")
        await services.modules.create_module("Unused", "Never assigned")
        done = await services.modules.assign_module(first.id, ["s1", "s2"])
        await services.modules.assign_module(second.id, ["s1"])
        await services.modules.mark_complete(done.id, "s1")

        performance = await services.analytics.student_performance("s1")
        summary = await services.analytics.portfolio_summary()

        assert (performance.assigned_modules, performance.completed_modules) == (2, 1)
        assert performance.module_completion == 50.0
        assert (summary.total_modules, summary.module_assignments) == (3, 2)
        assert summary.module_completion_rate == 33.3


@pytest.mark.parametrize("percentage,bucket", [
    (0.0, "0-20"), (20.0, "0-20"), (20.1, "21-40"), (60.0, "41-60"), (80.5, "81-100"), (100.0, "81-100"),
])
def test_score_bucket(percentage, bucket):
    assert score_bucket(percentage) == bucket


def test_trend_needs_three_attempts():
    assert trend_of([100.0, 0.0]) == "stable"
    assert trend_of([10.0, 50.0, 60.0, 90.0]) == "declining"
