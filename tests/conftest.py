"""Pytest configuration and fixtures."""

import os

# Must be set before memberhub.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["SNAPSHOT_SCHEDULER_ENABLED"] = "false"
os.environ["RECAPTCHA_SECRET_KEY"] = ""
os.environ["MAIL_USER"] = ""
os.environ["BCRYPT_ROUNDS"] = "10"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from memberhub.database import Base, get_db
from memberhub.models.auth import ActivationToken, LoginAttempt, LoginOtp, OtpAttempt, SessionToken  # noqa: F401
from memberhub.models.committee import CommitteeSettings, CommitteeSnapshot  # noqa: F401
from memberhub.models.security_event import SecurityEvent  # noqa: F401
from memberhub.models.user import User
from memberhub.services import auth as auth_module
from memberhub.services.auth import AuthService, hash_password
from memberhub.services.email import MailDeliveryError, Mailer
from memberhub.services.scheduler import SnapshotScheduler, set_snapshot_scheduler


class RecordingMailer(Mailer):
    """Renders every message as usual but remembers the secrets it carried."""

    def __init__(self) -> None:
        super().__init__()
        self.activation_tokens: dict[str, str] = {}
        self.otps: dict[str, str] = {}
        self.reset_tokens: dict[str, str] = {}
        self.sent: list[tuple[str, str]] = []
        self.fail_otp = False
        self.fail_activation = False

    def send(self, to_email: str, subject: str, html: str) -> None:
        self.sent.append((to_email, subject))
        super().send(to_email, subject, html)

    def send_activation_email(self, to_email: str, token: str, name: str = "", kind: str = "activation") -> None:
        if self.fail_activation:
            raise MailDeliveryError("SMTP down")
        self.activation_tokens[to_email] = token
        super().send_activation_email(to_email, token, name, kind)

    def send_otp_email(self, to_email: str, otp: str, name: str = "") -> None:
        if self.fail_otp:
            raise MailDeliveryError("SMTP down")
        self.otps[to_email] = otp
        super().send_otp_email(to_email, otp, name)

    def send_reset_password_email(self, to_email: str, token: str, name: str = "") -> None:
        self.reset_tokens[to_email] = token
        super().send_reset_password_email(to_email, token, name)


@pytest.fixture(name="db_session")
def db_session_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="mailer")
def mailer_fixture():
    return RecordingMailer()


@pytest.fixture(name="auth_service")
def auth_service_fixture(mailer: RecordingMailer):
    """Auth service wired to the recording mailer and installed as the process singleton."""
    service = AuthService(mailer=mailer)
    auth_module._auth_service = service
    yield service
    auth_module._auth_service = None


@pytest.fixture(name="snapshot_scheduler")
def snapshot_scheduler_fixture(db_session: Session):
    """A scheduler that is never started, so armed jobs stay pending."""
    scheduler = SnapshotScheduler(session_factory=lambda: db_session)
    set_snapshot_scheduler(scheduler)
    yield scheduler
    scheduler.cancel()
    set_snapshot_scheduler(None)


@pytest.fixture(name="client")
def client_fixture(db_session: Session, auth_service: AuthService, snapshot_scheduler: SnapshotScheduler):
    """Create a test client with overridden DB dependency and disabled rate limiting."""
    from main import app
    from memberhub.rate_limit import limiter

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture(name="create_user")
def create_user_fixture(db_session: Session):
    """Factory inserting a user directly, bypassing signup."""

    def _create(
        email: str = "member@example.com",
        password: str = "password123",
        name: str = "Test Member",
        status: str = "active",
        role: str = "member",
        **fields,
    ) -> User:
        user = User(
            name=name,
            email=email,
            password_hash=hash_password(password),
            account_status=status,
            user_role=role,
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _create


@pytest.fixture(name="login")
def login_fixture(mailer: RecordingMailer):
    """Run both login steps through the API. Returns the verify-otp response."""

    def _login(client: TestClient, email: str, password: str = "password123"):
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return client.post("/api/auth/verify-otp", json={"email": email, "otp": mailer.otps[email]})

    return _login


@pytest.fixture(name="member_client")
def member_client_fixture(client: TestClient, create_user, login):
    """Client holding a live session for an active member."""
    user = create_user()
    client.user_id = user.id
    response = login(client, "member@example.com")
    assert response.status_code == 200, response.text
    return client


@pytest.fixture(name="admin_client")
def admin_client_fixture(client: TestClient, create_user, login):
    """Client logged in as an admin, with a CSRF token in both cookie and header."""
    admin = create_user(email="admin@example.com", name="Site Admin", role="admin")
    client.user_id = admin.id
    response = login(client, "admin@example.com")
    assert response.status_code == 200, response.text
    csrf = client.get("/api/auth/csrf-token").json()["csrfToken"]
    client.headers["X-CSRF-Token"] = csrf
    return client
