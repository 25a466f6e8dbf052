from __future__ import annotations

from sqlalchemy.orm import Session

from app.models.professional import Professional


class ProfessionalRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, professional_id: int) -> Professional | None:
        return self.db.get(Professional, professional_id)

    def get_by_user_id(self, user_id: int) -> Professional | None:
        return (
            self.db.query(Professional)
            .filter(Professional.user_id == user_id)
            .one_or_none()
        )
