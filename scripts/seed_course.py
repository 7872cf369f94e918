#!/usr/bin/env python3
"""
Create a course row if it does not exist yet.

Run with:
    python scripts/seed_course.py --id course_dcz9f70 --title "Anti-bribery basics"
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import asyncio

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from compliance_lms.core.config import get_settings
from compliance_lms.infrastructure.db.models import CourseModel


async def seed_course(course_id: str, title: str, description: str | None) -> None:
    engine = create_async_engine(get_settings().async_database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    try:
        async with session_factory() as session:
            existing = await session.get(CourseModel, course_id)
            if existing is not None:
                print(f"Course already exists: {existing.id} ({existing.title})")
                return

            session.add(CourseModel(id=course_id, title=title, description=description))
            await session.commit()
            print(f"Created course: {course_id}")
    finally:
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--id", required=True, help="Course id")
    parser.add_argument("--title", required=True, help="Course title shown in emails")
    parser.add_argument("--description", default=None)
    args = parser.parse_args()

    asyncio.run(seed_course(args.id, args.title, args.description))


if __name__ == "__main__":
    main()
