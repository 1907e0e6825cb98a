# app/repositories/profile_repo.py
import uuid

from sqlmodel import Session, select

from app.models.profile import Profile


class ProfileRepository:
    """
    Data access layer for Profile.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic
    """

    def get_by_id(self, session: Session, user_id: uuid.UUID) -> Profile | None:
        """Return a Profile by primary key, or None if not found."""
        return session.get(Profile, user_id)

    def get_by_email(self, session: Session, email: str) -> Profile | None:
        """Return a Profile by (lower-cased) email, or None if not found."""
        stmt = select(Profile).where(Profile.email == email.lower())
        return session.exec(stmt).first()

    def create(self, session: Session, profile: Profile) -> Profile:
        """Insert a new Profile and return the persisted row."""
        session.add(profile)
        session.commit()
        session.refresh(profile)
        return profile
