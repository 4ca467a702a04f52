from typing import List

from sqlmodel import Session, select

from knowflow.models.skill_point import SkillPoint


class SkillPointRepository:
    def __init__(self, session: Session):
        self.session = session

    def list_all(self) -> List[SkillPoint]:
        """All skill points, oldest first."""
        query = select(SkillPoint).order_by(SkillPoint.created_at.asc())  # type: ignore[attr-defined]
        return list(self.session.exec(query).all())
