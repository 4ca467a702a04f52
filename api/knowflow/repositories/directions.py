from typing import List

from sqlmodel import Session, select

from knowflow.models.direction import Direction


class DirectionRepository:
    def __init__(self, session: Session):
        self.session = session

    def list(self) -> List[Direction]:
        """All directions, newest first."""
        query = select(Direction).order_by(Direction.created_at.desc())  # type: ignore[attr-defined]
        return list(self.session.exec(query).all())
