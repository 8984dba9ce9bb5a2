#!/usr/bin/env python3
"""Create demo users and a direct chat session between the first two."""

import sys
from pathlib import Path

# Add parent directory to path so we can import chatline modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.exc import SQLAlchemyError

from chatline.chat.sessions import ChatSessionManager
from chatline.core.database import SessionLocal
from chatline.core.security import get_password_hash
from chatline.models.user import User
from chatline.users.service import UserService


DEMO_USERS = [
    ("alice", "alice@example.com", "Alice Martin"),
    ("bob", "bob@example.com", "Bob Keller"),
    ("charlie", "charlie@example.com", "Charlie Diaz"),
]
DEMO_PASSWORD = "password123"


def get_or_create_user(db, username: str, email: str, display_name: str, password: str) -> User:
    existing = UserService.get_by_email(db, email)
    if existing:
        print(f"- {email} already exists, skipping")
        return existing

    user = User(
        username=username,
        email=email,
        display_name=display_name,
        password_hash=get_password_hash(password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    print(f"+ created {email} (username: {username})")
    return user


def main():
    password = sys.argv[1] if len(sys.argv) > 1 else DEMO_PASSWORD

    db = SessionLocal()
    try:
        users = [
            get_or_create_user(db, username, email, display_name, password)
            for username, email, display_name in DEMO_USERS
        ]
        session, created = ChatSessionManager.create_direct_session(db, users[0].id, users[1].id)
        state = "created" if created else "already exists"
        print(f"\nDirect session {session.id} {state} between {users[0].email} and {users[1].email}")
        print(f"All demo users share the password: {password}")
    except (SQLAlchemyError, ValueError) as e:
        db.rollback()
        print(f"Seeding failed: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
