"""User lookups, profile edits and durable presence state."""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import case, desc, or_
from sqlalchemy.orm import Session

from chatline.models.base import utcnow
from chatline.models.user import AuthProvider, User, UserStatus


logger = logging.getLogger("chatline.users")

_STATUS_ORDER = case(
    (User.status == UserStatus.ONLINE.value, 0),
    (User.status == UserStatus.AWAY.value, 1),
    else_=2,
)


class UserService:
    """Query and update helpers for the ``users`` table."""

    @staticmethod
    def get_user(db: Session, user_id: uuid.UUID) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_active_user(db: Session, user_id: uuid.UUID) -> Optional[User]:
        return db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def username_taken(
        db: Session,
        username: str,
        exclude_user_id: Optional[uuid.UUID] = None,
    ) -> bool:
        query = db.query(User.id).filter(User.username == username)
        if exclude_user_id is not None:
            query = query.filter(User.id != exclude_user_id)
        return query.first() is not None

    @staticmethod
    def list_users(
        db: Session,
        status: Optional[UserStatus] = None,
        search: Optional[str] = None,
    ) -> List[User]:
        """List active users, online first, then most recently seen."""
        query = db.query(User).filter(User.is_active.is_(True))

        if status is not None:
            query = query.filter(User.status == status.value)

        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    User.display_name.ilike(pattern),
                    User.username.ilike(pattern),
                    User.email.ilike(pattern),
                )
            )

        return query.order_by(_STATUS_ORDER, desc(User.last_seen)).all()

    @staticmethod
    def update_profile(db: Session, user: User, **updates) -> User:
        """Apply the given fields; an explicit None clears the field."""
        for key, value in updates.items():
            if hasattr(user, key):
                setattr(user, key, value)

        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def upsert_google_user(
        db: Session,
        google_id: str,
        email: str,
        display_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> User:
        """Find the user by Google id or email, linking or creating the account."""
        user = (
            db.query(User)
            .filter(or_(User.google_id == google_id, User.email == email))
            .first()
        )

        if user is None:
            username = email.split("@")[0]
            user = User(
                email=email,
                google_id=google_id,
                display_name=display_name,
                username=None if UserService.username_taken(db, username) else username,
                avatar_url=avatar_url,
                auth_provider=AuthProvider.GOOGLE.value,
            )
            logger.info("Creating user from Google profile: %s", email)
        elif not user.google_id:
            user.google_id = google_id
            user.avatar_url = avatar_url or user.avatar_url
            user.auth_provider = AuthProvider.GOOGLE.value
            logger.info("Linked Google account to existing user: %s", user.email)

        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def set_status(
        db: Session,
        user_id: uuid.UUID,
        status: UserStatus,
        seen_at: Optional[datetime] = None,
    ) -> Optional[User]:
        """Persist a presence transition and stamp ``last_seen``."""
        user = db.get(User, user_id)
        if user is None:
            return None

        user.status = status.value
        user.last_seen = seen_at or utcnow()
        db.add(user)
        db.commit()
        db.refresh(user)

        logger.info("Presence updated: user_id=%s, status=%s", user_id, status.value)
        return user
