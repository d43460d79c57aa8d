#!/usr/bin/env python3
"""
Percentage audit script.

Compares the percentage column of every stored result with the value derived
from its own score and total_points snapshot, and reports each row that has
drifted. With --fix the drifted rows are rewritten to the derived value.

The application never reads the stored column back as truth; this script
exists for reporting tools that query the table directly.
"""

import argparse
import asyncio
import sys
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import sessionmaker

from quizportal.common.logger import app_logger
from quizportal.common.utils import percentage_of
from quizportal.config import get_settings
from quizportal.database.models import ResultRecord
from quizportal.database.session import close_database, get_session_factory, initialize_database

logger = app_logger.getChild("scripts.verify_percentages")


@dataclass(frozen=True)
class PercentageDrift:
    result_id: str
    score: int
    total_points: int
    stored: float
    expected: float


async def audit_percentages(session_factory: sessionmaker, fix: bool = False) -> List[PercentageDrift]:
    """
    Find results whose stored percentage differs from score / total_points.

    Args:
        session_factory: Session factory bound to the portal database
        fix: Rewrite drifted rows to the derived percentage

    Returns:
        The drifted rows as found before any fix
    """
    drifts: List[PercentageDrift] = []
    async with session_factory() as session:
        async with session.begin():
            rows = await session.execute(
                select(
                    ResultRecord.id,
                    ResultRecord.score,
                    ResultRecord.total_points,
                    ResultRecord.percentage,
                ).order_by(ResultRecord.submitted_at, ResultRecord.id)
            )
            for result_id, score, total_points, stored in rows.all():
                expected = percentage_of(score, total_points)
                if stored != expected:
                    drifts.append(PercentageDrift(result_id, score, total_points, stored, expected))

            if fix:
                for drift in drifts:
                    await session.execute(
                        update(ResultRecord)
                        .where(ResultRecord.id == drift.result_id)
                        .values(percentage=drift.expected)
                    )

    for drift in drifts:
        logger.warning(
            f"Result {drift.result_id}: score {drift.score}/{drift.total_points}, "
            f"stored {drift.stored}%, expected {drift.expected}%"
        )
    logger.info(
        f"{len(drifts)} results with drifted percentages"
        + (" fixed" if fix and drifts else "")
    )
    return drifts


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Audit stored result percentages")
    parser.add_argument("--database-url", help="Database URL; defaults to DATABASE_URL")
    parser.add_argument("--fix", action="store_true", help="Rewrite drifted percentages")
    return parser.parse_args(argv)


async def async_main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    await initialize_database(args.database_url or settings.DATABASE_URL, create_tables=False)
    try:
        drifts = await audit_percentages(get_session_factory(), fix=args.fix)
    finally:
        await close_database()
    return 1 if drifts and not args.fix else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(async_main()))
