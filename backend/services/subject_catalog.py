from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.subject import Subject


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PredefinedSubject:
    name: str
    name_arabic: str
    category: str


# Request bodies refer to entries by position, so only append to this list.
PREDEFINED_SUBJECTS: tuple[PredefinedSubject, ...] = (
    PredefinedSubject("Quran", "القرآن الكريم", "quran"),
    PredefinedSubject("Namaz", "الصلاة", "fiqh"),
    PredefinedSubject("Tajweed", "التجويد", "quran"),
    PredefinedSubject("Hadith", "الحديث الشريف", "hadith"),
    PredefinedSubject("Muallim Sani", "المعلم الثاني", "arabic"),
    PredefinedSubject("Fundamentals of Religion", "أصول الدين", "aqidah"),
    PredefinedSubject("Duas & Azkar", "الأدعية والأذكار", "other"),
    PredefinedSubject("Alif-Ba", "ألف با", "arabic"),
    PredefinedSubject("Tabarak Juz", "جزء تبارك", "quran"),
    PredefinedSubject("Amma Juz", "جزء عم", "quran"),
    PredefinedSubject("Fiqh", "الفقه", "fiqh"),
    PredefinedSubject("Aqidah", "العقيدة", "aqidah"),
    PredefinedSubject("Islamic History", "التاريخ الإسلامي", "other"),
    PredefinedSubject("Arabic Grammar", "النحو العربي", "arabic"),
    PredefinedSubject("Seerah", "السيرة النبوية", "other"),
)


@dataclass
class SubjectBulkResult:
    created: list[Subject] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def subjects_by_category(db: Session) -> dict[str, list[Subject]]:
    """Subjects grouped by category, sorted by name; empty categories are left out."""

    grouped: dict[str, list[Subject]] = {}
    for subject in db.execute(select(Subject).order_by(func.lower(Subject.name), Subject.id)).scalars():
        grouped.setdefault(subject.category, []).append(subject)
    return grouped


def _name_taken(db: Session, name: str) -> bool:
    return db.execute(select(Subject.id).where(func.lower(Subject.name) == name.lower()).limit(1)).first() is not None


def bulk_create_predefined(db: Session, indices: list[int]) -> SubjectBulkResult:
    """Create catalog subjects by index, one commit each; failures are collected, not raised."""

    result = SubjectBulkResult()
    for index in indices:
        if not 0 <= index < len(PREDEFINED_SUBJECTS):
            result.errors.append(f"Invalid subject index: {index}")
            continue

        item = PREDEFINED_SUBJECTS[index]
        if _name_taken(db, item.name):
            result.errors.append(f'Subject "{item.name}" already exists')
            continue

        subject = Subject(
            name=item.name,
            name_arabic=item.name_arabic,
            category=item.category,
            level="beginner",
            description=f"Study of {item.name} according to Islamic tradition",
        )
        db.add(subject)
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Predefined subject create failed index=%s", index)
            result.errors.append(f'Failed to create subject "{item.name}"')
            continue
        db.refresh(subject)
        result.created.append(subject)

    logger.info(
        "Bulk subject create requested=%d created=%d errors=%d", len(indices), len(result.created), len(result.errors)
    )
    return result
