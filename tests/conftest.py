import pytest
from werkzeug.security import generate_password_hash

from app.insign import create_app
from app.insign import auth
from app.insign.db import session_scope
from app.insign.mail import MailService
from app.insign.models import Admin, Base, Permission, Role, User
from app.insign.tokens import create_access_token

ALL_PERMISSIONS = (
    ("admin.view", "Admin: view dashboard"),
    ("events.view", "Events: view"),
    ("events.edit", "Events: edit"),
    ("policies.view", "Policies: view"),
    ("policies.edit", "Policies: edit"),
    ("inquiries.view", "Inquiries: view"),
    ("inquiries.edit", "Inquiries: edit"),
    ("inquiries.respond", "Inquiries: respond"),
    ("contracts.view", "Contracts: view"),
    ("contracts.send", "Contracts: send"),
    ("users.view", "Users: view"),
    ("admins.view", "Admins: view"),
    ("admins.edit", "Admins: edit"),
)


class FakeTransport:
    """Records outgoing messages instead of talking to an SMTP server."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def send(self, message):
        if self.fail:
            raise ConnectionRefusedError("smtp.internal:465 refused connection for user mailer/s3cret")
        self.sent.append(message)


@pytest.fixture(autouse=True)
def _reset_login_rate_limit():
    auth._login_attempts.clear()
    yield
    auth._login_attempts.clear()


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("JWT_SECRET", "test-jwt-secret")
    monkeypatch.setenv("APP_CLIENT_URL", "https://app.example.com/")
    for k in ("SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASS", "SMTP_FROM"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        r = Role(key="admin", name="Administrator")
        for key, name in ALL_PERMISSIONS:
            r.permissions.append(Permission(key=key, name=name))
        a = Admin(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        a.roles.append(r)
        s.add_all([r, a])

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def admin_client(client):
    r = client.post("/adm/login", data={"email": "admin@example.com", "password": "pw"})
    assert r.status_code == 302
    return client


@pytest.fixture()
def csrf(admin_client):
    with admin_client.session_transaction() as sess:
        return sess["csrf_token"]


@pytest.fixture()
def outbox(app):
    transport = FakeTransport()
    app.extensions["mail"] = MailService(app.config, transport=transport)
    return transport


@pytest.fixture()
def failing_outbox(app):
    transport = FakeTransport(fail=True)
    app.extensions["mail"] = MailService(app.config, transport=transport)
    return transport


@pytest.fixture()
def make_user(app):
    def _make(email="user@example.com", name="Test User") -> int:
        with session_scope(app) as s:
            u = User(email=email, name=name)
            s.add(u)
            s.flush()
            return u.id

    return _make


@pytest.fixture()
def bearer(app):
    def _header(user_id: int) -> dict:
        with app.app_context():
            token = create_access_token(user_id)
        return {"Authorization": f"Bearer {token}"}

    return _header
