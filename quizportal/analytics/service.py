"""
Analytics Aggregator

Read-only statistics over assignments and results. Everything is recomputed
from the repositories on each call; repeated attempts are collapsed to the
student's latest attempt wherever an average or rate is reported, so
retakes never skew a score. Module statistics come from the completion
times recorded on module assignments.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from quizportal.analytics.models import (
    TREND_DECLINING,
    TREND_IMPROVING,
    TREND_STABLE,
    ModuleAnalytics,
    PendingStudent,
    PerformerSummary,
    PortfolioSummary,
    QuestionAccuracy,
    StudentPerformance,
    TestAnalytics,
    TestSummary,
)
from quizportal.common.exceptions import NotFoundError, ValidationError
from quizportal.common.logger import app_logger, log_execution_time
from quizportal.common.utils import ensure_utc, mean, round_half_up, utc_now
from quizportal.config import Settings, get_settings
from quizportal.domain.models import AttemptResult, LearningModule, MockTest, ModuleAssignment
from quizportal.domain.repository import (
    AssignmentRepository,
    ModuleAssignmentRepository,
    ModuleRepository,
    ResultRepository,
    TestRepository,
    result_order_key,
)

logger = app_logger.getChild("analytics.service")

# Upper bound (inclusive) of each score bucket
SCORE_BUCKETS: Tuple[Tuple[str, float], ...] = (
    ("0-20", 20.0),
    ("21-40", 40.0),
    ("41-60", 60.0),
    ("61-80", 80.0),
    ("81-100", 100.0),
)
TREND_WINDOW = 3
TREND_THRESHOLD = 5.0
RECENT_SCORES = 5


def latest_results(results: Iterable[AttemptResult], key: Callable[[AttemptResult], object]) -> Dict[object, AttemptResult]:
    """Keep the most recent result per key."""
    latest: Dict[object, AttemptResult] = {}
    for result in results:
        current = latest.get(key(result))
        if current is None or result_order_key(result) > result_order_key(current):
            latest[key(result)] = result
    return latest


def rate(part: int, whole: int) -> float:
    """part / whole as a percentage capped at 100, rounded half-up; 0 when whole is 0."""
    if whole <= 0:
        return 0.0
    return round_half_up(min(Decimal(part) * 100 / Decimal(whole), Decimal(100)))


def average(percentages: Iterable[float]) -> float:
    return round_half_up(mean(percentages))


def module_completion_rate(assignments: Iterable[ModuleAssignment]) -> float:
    """Completed (student, module) pairs over assigned pairs."""
    assigned = set()
    completed = set()
    for assignment in assignments:
        assigned.update((user_id, assignment.module_id) for user_id in assignment.assigned_student_ids)
        completed.update((user_id, assignment.module_id) for user_id in assignment.completions)
    return rate(len(completed), len(assigned))


def score_bucket(percentage: float) -> str:
    for label, upper in SCORE_BUCKETS:
        if percentage <= upper:
            return label
    return SCORE_BUCKETS[-1][0]


def trend_of(newest_first: List[float]) -> str:
    """
    Compare the mean of the newest attempts with the mean of the oldest ones.
    """
    if len(newest_first) < TREND_WINDOW:
        return TREND_STABLE
    recent = mean(newest_first[:TREND_WINDOW])
    older = mean(newest_first[-TREND_WINDOW:])
    if recent > older + TREND_THRESHOLD:
        return TREND_IMPROVING
    if recent < older - TREND_THRESHOLD:
        return TREND_DECLINING
    return TREND_STABLE


class AnalyticsAggregator:
    """
    Computes completion and performance statistics.
    """

    def __init__(
        self,
        test_repository: TestRepository,
        assignment_repository: AssignmentRepository,
        result_repository: ResultRepository,
        module_repository: ModuleRepository,
        module_assignment_repository: ModuleAssignmentRepository,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._tests = test_repository
        self._assignments = assignment_repository
        self._results = result_repository
        self._modules = module_repository
        self._module_assignments = module_assignment_repository
        self._settings = settings or get_settings()
        self._clock = clock

    async def _require_test(self, test_id: str) -> MockTest:
        test = await self._tests.get(test_id)
        if test is None:
            raise NotFoundError("Test", test_id)
        return test

    @log_execution_time(logger)
    async def test_summary(self, test_id: str) -> TestSummary:
        """
        Summarize completion of one test across all of its assignments.

        Raises:
            NotFoundError: If the test does not exist
        """
        await self._require_test(test_id)

        assigned = set()
        for assignment in await self._assignments.list_for_test(test_id):
            assigned |= assignment.assigned_student_ids

        latest = latest_results(await self._results.list_for_test(test_id), key=lambda r: r.user_id)

        return TestSummary(
            test_id=test_id,
            assigned_count=len(assigned),
            completed_count=len(latest),
            completion_rate=rate(len(latest), len(assigned)),
            average_score=average(r.percentage for r in latest.values()),
        )

    @log_execution_time(logger)
    async def top_performers(self, limit: Optional[int] = None, min_tests_completed: int = 1) -> List[PerformerSummary]:
        """
        Rank students by the mean of their latest percentage per test.

        Ties are broken by the number of tests completed (more first), then
        by user id.

        Args:
            limit: Maximum number of students; defaults to TOP_PERFORMERS_LIMIT
            min_tests_completed: Students with fewer distinct tests are left out
        """
        limit = self._settings.TOP_PERFORMERS_LIMIT if limit is None else limit
        if limit < 1:
            raise ValidationError("limit must be at least 1", errors={"limit": "Must be at least 1"})

        latest = latest_results(await self._results.list_all(), key=lambda r: (r.user_id, r.test_id))
        per_user: Dict[str, List[float]] = defaultdict(list)
        for (user_id, _), result in latest.items():
            per_user[user_id].append(result.percentage)

        ranked = sorted(
            (
                (mean(scores), len(scores), user_id)
                for user_id, scores in per_user.items()
                if len(scores) >= min_tests_completed
            ),
            key=lambda row: (-row[0], -row[1], row[2]),
        )
        return [
            PerformerSummary(user_id=user_id, average_score=round_half_up(avg), tests_completed=count)
            for avg, count, user_id in ranked[:limit]
        ]

    @log_execution_time(logger)
    async def pending_for_test(self, test_id: str, now: Optional[datetime] = None) -> List[PendingStudent]:
        """
        Students on an active assignment of the test who have not submitted yet.

        A student on several assignments gets the most lenient deadline:
        none if any assignment has no due date, otherwise the latest one.

        Raises:
            NotFoundError: If the test does not exist
        """
        await self._require_test(test_id)
        now = ensure_utc(now) or self._clock()

        completed = {r.user_id for r in await self._results.list_for_test(test_id)}
        due_dates: Dict[str, List[Optional[datetime]]] = defaultdict(list)
        for assignment in await self._assignments.list_for_test(test_id):
            if not assignment.is_active:
                continue
            for user_id in assignment.assigned_student_ids - completed:
                due_dates[user_id].append(assignment.due_date)

        pending = []
        for user_id in sorted(due_dates):
            dates = due_dates[user_id]
            due_date = None if any(d is None for d in dates) else max(dates)
            pending.append(PendingStudent(
                user_id=user_id,
                due_date=due_date,
                is_overdue=due_date is not None and now > due_date,
            ))
        return pending

    @log_execution_time(logger)
    async def portfolio_summary(self) -> PortfolioSummary:
        tests = await self._tests.list()
        assignments = await self._assignments.list_all()
        results = await self._results.list_all()
        modules = await self._modules.list()
        module_assignments = await self._module_assignments.list_all()

        assigned_pairs = {
            (user_id, assignment.test_id)
            for assignment in assignments
            for user_id in assignment.assigned_student_ids
        }
        latest = latest_results(results, key=lambda r: (r.user_id, r.test_id))

        return PortfolioSummary(
            total_tests=len(tests),
            published_tests=sum(1 for t in tests if t.is_published),
            total_assignments=len(assignments),
            active_assignments=sum(1 for a in assignments if a.is_active),
            assigned_pairs=len(assigned_pairs),
            completed_pairs=len(latest),
            completion_rate=rate(len(latest), len(assigned_pairs)),
            average_score=average(r.percentage for r in latest.values()),
            total_attempts=len(results),
            total_modules=len(modules),
            module_assignments=len(module_assignments),
            module_completion_rate=module_completion_rate(module_assignments),
        )

    @log_execution_time(logger)
    async def test_analytics(self, test_id: str) -> TestAnalytics:
        """
        Pass rate, score distribution and per-question accuracy of a test.

        Raises:
            NotFoundError: If the test does not exist
        """
        test = await self._require_test(test_id)
        results = await self._results.list_for_test(test_id)
        latest = latest_results(results, key=lambda r: r.user_id)
        scores = [r.percentage for r in latest.values()]

        distribution = {label: 0 for label, _ in SCORE_BUCKETS}
        for score in scores:
            distribution[score_bucket(score)] += 1

        passed = sum(1 for score in scores if score >= self._settings.PASS_PERCENTAGE)

        answered: Dict[str, int] = defaultdict(int)
        correct: Dict[str, int] = defaultdict(int)
        for result in results:
            for record in result.answers:
                answered[record.question_id] += 1
                if record.is_correct:
                    correct[record.question_id] += 1

        return TestAnalytics(
            test_id=test.id,
            title=test.title,
            total_attempts=len(results),
            unique_students=len(latest),
            average_score=average(scores),
            highest_score=max(scores, default=0.0),
            lowest_score=min(scores, default=0.0),
            pass_rate=rate(passed, len(scores)),
            score_distribution=distribution,
            question_accuracy=tuple(
                QuestionAccuracy(
                    question_id=question.id,
                    attempts=answered[question.id],
                    correct=correct[question.id],
                    accuracy=rate(correct[question.id], answered[question.id]),
                )
                for question in test.questions
            ),
        )

    @log_execution_time(logger)
    async def student_performance(self, user_id: str) -> StudentPerformance:
        """
        Performance profile of one student.

        Averages use the latest attempt per test; recent scores and the
        trend look at every attempt, newest first.
        """
        assignments = await self._assignments.list_for_student(user_id)
        results = await self._results.list_for_user(user_id)
        latest = latest_results(results, key=lambda r: r.test_id)
        scores = [r.percentage for r in latest.values()]

        newest_first = sorted(results, key=result_order_key, reverse=True)
        history = [r.percentage for r in newest_first]

        module_assignments = await self._module_assignments.list_for_student(user_id)
        assigned_modules = {a.module_id for a in module_assignments}
        completed_modules = {a.module_id for a in module_assignments if a.is_completed(user_id)}

        return StudentPerformance(
            user_id=user_id,
            assigned_tests=len({a.test_id for a in assignments}),
            completed_tests=len(latest),
            total_attempts=len(results),
            average_score=average(scores),
            highest_score=max(scores, default=0.0),
            lowest_score=min(scores, default=0.0),
            recent_scores=tuple(history[:RECENT_SCORES]),
            trend=trend_of(history),
            last_activity=newest_first[0].submitted_at if newest_first else None,
            assigned_modules=len(assigned_modules),
            completed_modules=len(completed_modules),
            module_completion=rate(len(completed_modules), len(assigned_modules)),
        )

    async def _require_module(self, module_id: str) -> LearningModule:
        module = await self._modules.get(module_id)
        if module is None:
            raise NotFoundError("Module", module_id)
        return module

    @log_execution_time(logger)
    async def module_analytics(self, module_id: str, now: Optional[datetime] = None) -> ModuleAnalytics:
        """
        Completion statistics of a module across all of its assignments.

        Raises:
            NotFoundError: If the module does not exist
        """
        module = await self._require_module(module_id)
        now = ensure_utc(now) or self._clock()
        assignments = await self._module_assignments.list_for_module(module_id)

        assigned = set()
        completed = set()
        overdue = set()
        days: List[float] = []
        for assignment in assignments:
            assigned |= assignment.assigned_student_ids
            for user_id, completed_at in assignment.completions.items():
                completed.add(user_id)
                days.append((completed_at - assignment.created_at).total_seconds() / 86400)
            if assignment.is_active and assignment.due_date is not None and now > assignment.due_date:
                overdue |= assignment.assigned_student_ids - assignment.completions.keys()

        return ModuleAnalytics(
            module_id=module.id,
            title=module.title,
            assignment_count=len(assignments),
            assigned_count=len(assigned),
            completed_count=len(completed),
            completion_rate=rate(len(completed), len(assigned)),
            average_completion_days=average(days),
            overdue_count=len(overdue - completed),
        )
