import httpx
import pytest
from fakeredis import aioredis
from sqlalchemy import select

from app.core.config import Settings
from app.db.models.account import Account
from app.db.models.otp import OTPCode
from app.main import create_application
from app.services.email import EmailSender


class RecordingEmailSender(EmailSender):
    """Keeps every delivered OTP instead of sending mail."""

    def __init__(self):
        self.messages = []
        self.codes = {}
        self.fail_with = None

    async def send(self, to, subject, html):
        if self.fail_with:
            return False, self.fail_with
        self.messages.append((to, subject, html))
        return True, None

    async def send_otp_email(self, email, otp_code, expires_seconds):
        sent, err = await super().send_otp_email(email, otp_code, expires_seconds)
        if sent:
            self.codes[email] = otp_code
        return sent, err


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'smartvest.db'}",
        SECRET_KEY="test-secret-key",
        ENVIRONMENT="test",
        EMAIL_BACKEND="console",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def redis():
    return aioredis.FakeRedis(decode_responses=True)


@pytest.fixture
async def app(settings, redis, email_sender):
    application = create_application(settings, redis=redis, email_sender=email_sender)
    await application.state.database.create_all()
    yield application
    await application.state.database.dispose()


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def make_client(app):
    """Build an extra client, e.g. one starting with a given cookie jar."""

    def _make(cookies=None):
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url="http://testserver",
            cookies=cookies,
        )

    return _make


@pytest.fixture
def otp_rows(app):
    async def _rows(email):
        async with app.state.database.session_factory() as session:
            result = await session.scalars(select(OTPCode).where(OTPCode.email == email))
            return list(result.all())

    return _rows


@pytest.fixture
def load_account(app):
    async def _load(email):
        async with app.state.database.session_factory() as session:
            return await session.scalar(select(Account).where(Account.email == email))

    return _load


@pytest.fixture
def sign_in(client, email_sender):
    """Run the OTP flow for an email and return the issued token."""

    async def _sign_in(email="alice@example.com"):
        response = await client.post("/api/auth/register", json={"email": email})
        assert response.status_code == 200
        response = await client.post(
            "/api/auth/verify-otp",
            json={"email": email, "otp": email_sender.codes[email]},
        )
        assert response.status_code == 200
        return response.json()["token"]

    return _sign_in


def bearer(token):
    return {"Authorization": f"Bearer {token}"}
