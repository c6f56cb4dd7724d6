"""
Assignment catalog loader from CSV
"""
import csv
import logging
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy import select

from crazy88.db.database import Database
from crazy88.db.tables import Assignment
from crazy88.models import AssignmentInfo


logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "y", "x"}


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in TRUE_VALUES


def load_catalog(csv_path: str) -> Dict[int, AssignmentInfo]:
    """
    Load the assignment catalog from a CSV file

    CSV format:
        number,title,description,points_base,requires_photo,requires_video,requires_audio,is_active
        1,Human pyramid,Build a pyramid of at least six people,2,1,0,0,1

    Args:
        csv_path: Path to CSV file

    Returns:
        Dictionary mapping assignment number to AssignmentInfo

    Raises:
        FileNotFoundError: If CSV file not found
        ValueError: If a row has an invalid number or point value
    """
    path = Path(csv_path)

    if not path.exists():
        raise FileNotFoundError(f"Assignment catalog not found: {csv_path}")

    catalog = {}

    with open(path, 'r', encoding='utf-8') as f:
        reader = csv.DictReader(f)

        for row in reader:
            number = int(row['number'])
            points_base = int(row.get('points_base') or 1)

            if number < 1:
                raise ValueError(f"Assignment {number}: number must be 1 or higher")
            if points_base < 1:
                raise ValueError(f"Assignment {number}: points_base must be at least 1")
            if number in catalog:
                raise ValueError(f"Assignment {number}: duplicate number")

            catalog[number] = AssignmentInfo(
                number=number,
                title=(row.get('title') or '').strip(),
                description=(row.get('description') or '').strip(),
                points_base=points_base,
                requires_photo=_flag(row.get('requires_photo')),
                requires_video=_flag(row.get('requires_video')),
                requires_audio=_flag(row.get('requires_audio')),
                is_active=_flag(row.get('is_active', '1')),
            )

    if not catalog:
        raise ValueError(f"No assignments loaded from {csv_path}")

    logger.info(f"✅ Loaded {len(catalog)} assignments from {csv_path}")

    return catalog


def seed_catalog(db: Database, catalog: Dict[int, AssignmentInfo]) -> int:
    """Insert catalog entries that are not in the datastore yet; existing rows are kept"""
    with db.session() as s:
        existing = set(s.execute(select(Assignment.number)).scalars().all())
        added = 0
        for number, info in catalog.items():
            if number in existing:
                continue
            s.add(Assignment(**info.model_dump()))
            added += 1
    if added:
        logger.info(f"🌱 Seeded {added} assignments")
    return added


def _info(row: Assignment) -> AssignmentInfo:
    return AssignmentInfo(
        number=row.number,
        title=row.title,
        description=row.description,
        points_base=row.points_base,
        requires_photo=row.requires_photo,
        requires_video=row.requires_video,
        requires_audio=row.requires_audio,
        is_active=row.is_active,
    )


def get_assignment(db: Database, number: int) -> Optional[AssignmentInfo]:
    with db.session() as s:
        row = s.get(Assignment, number)
        return _info(row) if row else None


def list_assignments(db: Database, active_only: bool = True) -> List[AssignmentInfo]:
    with db.session() as s:
        stmt = select(Assignment).order_by(Assignment.number)
        if active_only:
            stmt = stmt.where(Assignment.is_active.is_(True))
        return [_info(row) for row in s.execute(stmt).scalars().all()]
