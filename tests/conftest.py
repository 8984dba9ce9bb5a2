import os

# Configure the app before anything imports chatline settings
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-chatline-tests")
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["REDIS_URL"] = "disabled"
os.environ["ENVIRONMENT"] = "test"
os.environ["OPENAI_API_KEY"] = ""

import uuid
from typing import Any, Callable, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

import chatline.ai.models  # noqa: F401
import chatline.chat.models  # noqa: F401
from chatline.chat.sessions import ChatSessionManager
from chatline.core.database import SessionLocal, engine
from chatline.core.security import create_access_token, get_password_hash
from chatline.models import Base, User
from chatline.realtime import Connection, RealtimeGateway, RealtimeHub

TEST_PASSWORD = "password123"


class FakeSocket:
    """Stands in for a WebSocket; records every frame it is asked to send."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.fail = fail
        self.on_send: Optional[Callable[[Dict[str, Any]], None]] = None

    async def send_json(self, data: Dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("socket is closed")
        if self.on_send is not None:
            self.on_send(data)
        self.sent.append(data)

    def events(self, name: Optional[str] = None) -> List[Dict[str, Any]]:
        return [frame for frame in self.sent if name is None or frame["event"] == name]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture(scope="session")
def password_hash() -> str:
    return get_password_hash(TEST_PASSWORD)


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db, password_hash):
    def _make_user(name: str, **fields) -> User:
        user = User(
            email=f"{name}@example.com",
            username=name,
            display_name=name.capitalize(),
            password_hash=password_hash,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def alice(make_user) -> User:
    return make_user("alice")


@pytest.fixture
def bob(make_user) -> User:
    return make_user("bob")


@pytest.fixture
def carol(make_user) -> User:
    return make_user("carol")


@pytest.fixture
def direct_session(db, alice, bob):
    session, _ = ChatSessionManager.create_direct_session(db, alice.id, bob.id)
    return session


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}

    return _auth_headers


@pytest.fixture
def hub() -> RealtimeHub:
    return RealtimeHub()


@pytest.fixture
def gateway(hub) -> RealtimeGateway:
    return RealtimeGateway(hub, SessionLocal)


@pytest.fixture
def make_connection():
    def _make_connection(user_id: uuid.UUID, fail: bool = False) -> Connection:
        return Connection(FakeSocket(fail=fail), user_id, "user@example.com")

    return _make_connection


@pytest.fixture
def connect(gateway):
    """Attach a user through the full connect sequence."""

    async def _connect(user: User) -> Connection:
        connection = Connection(FakeSocket(), user.id, user.email)
        await gateway.connect(connection)
        return connection

    return _connect


@pytest.fixture
def client():
    from main import app
    from chatline.realtime import hub as app_hub
    from chatline.realtime.registry import ConnectionRegistry
    from chatline.realtime.rooms import RoomManager

    with TestClient(app) as test_client:
        yield test_client

    # Connections left behind by a test must not leak into the next one
    app_hub.connections.clear()
    app_hub.registry = ConnectionRegistry()
    app_hub.rooms = RoomManager()
    app.dependency_overrides.clear()
