from datetime import timedelta

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from app.core.clock import utcnow
from app.core.exceptions import BadRequestException
from app.db.models.account import Account
from app.db.models.otp import OTPCode
from app.schemas.otp import OTPVerify
from app.services.accounts import AccountService
from app.services.auth import AuthService
from app.services.otp import OTPAttemptLimiter, OTPService

pytestmark = pytest.mark.anyio

ALICE = "alice@example.com"


def fixed_codes(monkeypatch, *codes):
    values = iter(codes)
    monkeypatch.setattr("app.services.otp.generate_otp", lambda length=6: next(values))


async def test_request_and_verify_alice(client, email_sender, otp_rows, load_account, app):
    response = await client.post("/api/auth/register", json={"email": ALICE})
    assert response.status_code == 200
    assert response.json() == {"message": "Verification code sent to your email."}

    rows = await otp_rows(ALICE)
    assert len(rows) == 1
    code = rows[0].code
    assert len(code) == 6 and code.isdigit()
    expected_expiry = utcnow() + timedelta(seconds=600)
    assert abs((rows[0].expires_at - expected_expiry).total_seconds()) < 5
    assert email_sender.codes[ALICE] == code
    assert code in email_sender.messages[0][2]

    response = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": code})
    assert response.status_code == 200
    body = response.json()
    assert body["token"]
    assert body["token_type"] == "bearer"

    assert await otp_rows(ALICE) == []
    account = await load_account(ALICE)
    assert account is not None

    claims = app.state.identity.verify(body["token"])
    assert claims.account_id == account.id
    assert claims.email == ALICE


async def test_code_is_single_use(client, email_sender):
    await client.post("/api/auth/register", json={"email": ALICE})
    code = email_sender.codes[ALICE]

    first = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": code})
    second = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": code})

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["detail"] == "Invalid or expired code."


async def test_verify_before_any_request_fails(client):
    response = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": "123456"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid or expired code."


async def test_code_for_other_email_fails(client, email_sender):
    await client.post("/api/auth/register", json={"email": ALICE})
    code = email_sender.codes[ALICE]

    response = await client.post("/api/auth/verify-otp", json={"email": "bob@example.com", "otp": code})
    assert response.status_code == 400


async def test_expired_code_is_rejected(client, email_sender, app, otp_rows):
    await client.post("/api/auth/register", json={"email": ALICE})
    code = email_sender.codes[ALICE]

    async with app.state.database.session_factory() as session:
        await session.execute(
            update(OTPCode).where(OTPCode.email == ALICE).values(expires_at=utcnow() - timedelta(seconds=1))
        )
        await session.commit()

    response = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": code})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid or expired code."


async def test_new_request_supersedes_previous_code(client, monkeypatch, otp_rows):
    fixed_codes(monkeypatch, "111111", "222222")

    await client.post("/api/auth/register", json={"email": ALICE})
    await client.post("/api/auth/register", json={"email": ALICE})

    rows = await otp_rows(ALICE)
    assert [row.code for row in rows] == ["222222"]

    old = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": "111111"})
    assert old.status_code == 400
    new = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": "222222"})
    assert new.status_code == 200


async def test_first_verification_starts_trial(sign_in, load_account):
    await sign_in(ALICE)

    account = await load_account(ALICE)
    assert account.subscription_status == "trial"
    assert account.trial_end_date - account.trial_start_date == timedelta(days=14)
    assert abs((account.trial_start_date - utcnow()).total_seconds()) < 5


async def test_returning_account_keeps_subscription(sign_in, load_account, app):
    await sign_in(ALICE)
    original = await load_account(ALICE)

    async with app.state.database.session_factory() as session:
        await session.execute(update(Account).where(Account.email == ALICE).values(subscription_status="pro"))
        await session.commit()

    await sign_in(ALICE)
    account = await load_account(ALICE)
    assert account.id == original.id
    assert account.subscription_status == "pro"
    assert account.trial_end_date == original.trial_end_date


async def test_missing_email_is_rejected_before_side_effects(client, email_sender, otp_rows):
    response = await client.post("/api/auth/register", json={})
    assert response.status_code == 400
    assert email_sender.messages == []


async def test_malformed_email_is_rejected(client, email_sender):
    response = await client.post("/api/auth/send-otp", json={"email": "not-an-email"})
    assert response.status_code == 400
    assert email_sender.messages == []


async def test_missing_code_is_rejected(client):
    response = await client.post("/api/auth/verify-otp", json={"email": ALICE})
    assert response.status_code == 400


async def test_send_otp_alias_and_code_field(client, email_sender):
    response = await client.post("/api/auth/send-otp", json={"email": ALICE})
    assert response.status_code == 200

    response = await client.post(
        "/api/auth/verify-otp",
        json={"email": ALICE, "code": email_sender.codes[ALICE]},
    )
    assert response.status_code == 200


async def test_email_is_matched_case_insensitively(client, email_sender, load_account):
    await client.post("/api/auth/register", json={"email": "Alice@Example.com"})
    code = email_sender.codes[ALICE]

    response = await client.post("/api/auth/verify-otp", json={"email": "ALICE@example.com", "otp": code})
    assert response.status_code == 200
    assert (await load_account(ALICE)) is not None


async def test_request_response_does_not_reveal_accounts(client, sign_in):
    await sign_in(ALICE)

    known = await client.post("/api/auth/register", json={"email": ALICE})
    unknown = await client.post("/api/auth/register", json={"email": "carol@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()


async def test_send_failure_retracts_code(client, email_sender, otp_rows):
    email_sender.fail_with = "provider down"

    response = await client.post("/api/auth/register", json={"email": ALICE})

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to send verification code."
    assert await otp_rows(ALICE) == []


async def test_store_failure_sends_nothing(client, email_sender, monkeypatch):
    async def broken_issue(self, email):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(OTPService, "issue_otp", broken_issue)

    response = await client.post("/api/auth/register", json={"email": ALICE})

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to store verification code."
    assert email_sender.messages == []


async def test_provisioning_failure_keeps_code_for_retry(client, email_sender, monkeypatch, otp_rows, load_account):
    await client.post("/api/auth/register", json={"email": ALICE})
    code = email_sender.codes[ALICE]

    async def broken_get_or_create(self, email):
        raise OperationalError("INSERT", {}, Exception("connection reset"))

    monkeypatch.setattr(AccountService, "get_or_create", broken_get_or_create)
    response = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": code})
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to provision account."
    assert len(await otp_rows(ALICE)) == 1

    monkeypatch.undo()
    response = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": code})
    assert response.status_code == 200
    assert await otp_rows(ALICE) == []
    assert (await load_account(ALICE)) is not None


async def test_code_is_burned_after_too_many_wrong_guesses(client, monkeypatch, otp_rows):
    fixed_codes(monkeypatch, "123456", "654321")
    await client.post("/api/auth/register", json={"email": ALICE})

    for _ in range(5):
        response = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": "000000"})
        assert response.status_code == 400

    assert await otp_rows(ALICE) == []
    response = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": "123456"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid or expired code."

    await client.post("/api/auth/register", json={"email": ALICE})
    response = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": "654321"})
    assert response.status_code == 200


async def test_verify_sets_session_cookie(client, email_sender):
    await client.post("/api/auth/register", json={"email": ALICE})

    response = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": email_sender.codes[ALICE]})

    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"token={response.json()['token']}")
    assert "HttpOnly" in set_cookie
    assert "Max-Age=604800" in set_cookie
    assert "Path=/" in set_cookie
    assert "SameSite=lax" in set_cookie
    assert "Secure" not in set_cookie


class FailingRedis:
    """Forwards to a working Redis but refuses the listed commands."""

    def __init__(self, redis, *failing):
        self._redis = redis
        self._failing = set(failing)

    def __getattr__(self, name):
        if name in self._failing:
            async def _refuse(*args, **kwargs):
                raise RedisConnectionError("Connection refused")

            return _refuse
        return getattr(self._redis, name)


async def test_concurrent_consumers_delete_code_once(client, email_sender, app, otp_rows):
    await client.post("/api/auth/register", json={"email": ALICE})
    code = email_sender.codes[ALICE]

    factory = app.state.database.session_factory
    async with factory() as first, factory() as second:
        first_store, second_store = OTPService(first), OTPService(second)
        first_row = await first_store.find_valid(ALICE, code)
        second_row = await second_store.find_valid(ALICE, code)
        assert first_row is not None and second_row is not None

        assert await first_store.consume(first_row) is True
        await first.commit()
        assert await second_store.consume(second_row) is False
        await second.rollback()

    assert await otp_rows(ALICE) == []


async def test_stale_lookup_does_not_mint_second_token(client, email_sender, app, redis, settings, load_account):
    await client.post("/api/auth/register", json={"email": ALICE})
    code = email_sender.codes[ALICE]

    async with app.state.database.session_factory() as session:
        otp_service = OTPService(session)
        stale_row = await otp_service.find_valid(ALICE, code)

        winner = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": code})
        assert winner.status_code == 200

        async def stale_lookup(email, submitted):
            return stale_row

        otp_service.find_valid = stale_lookup
        auth = AuthService(
            session=session,
            otp_service=otp_service,
            attempts=OTPAttemptLimiter(redis),
            email_sender=email_sender,
            identity=app.state.identity,
            accounts=AccountService(session, trial_days=settings.TRIAL_DAYS),
        )
        with pytest.raises(BadRequestException) as excinfo:
            await auth.verify_otp(OTPVerify.model_validate({"email": ALICE, "otp": code}))

    assert excinfo.value.detail == "Invalid or expired code."
    assert (await load_account(ALICE)) is not None


async def test_redis_outage_on_request_leaves_no_code(client, email_sender, app, redis, otp_rows):
    app.state.redis = FailingRedis(redis, "delete")

    response = await client.post("/api/auth/register", json={"email": ALICE})

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to store verification code."
    assert await otp_rows(ALICE) == []
    assert email_sender.messages == []


async def test_redis_outage_on_verify_keeps_code(client, email_sender, app, redis, otp_rows):
    await client.post("/api/auth/register", json={"email": ALICE})
    code = email_sender.codes[ALICE]
    app.state.redis = FailingRedis(redis, "get")

    response = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": code})

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to verify code."
    assert len(await otp_rows(ALICE)) == 1


async def test_uncounted_wrong_guess_burns_code(client, email_sender, app, redis, otp_rows):
    await client.post("/api/auth/register", json={"email": ALICE})
    code = email_sender.codes[ALICE]
    app.state.redis = FailingRedis(redis, "incr")
    wrong = "000000" if code != "000000" else "111111"

    response = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": wrong})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid or expired code."
    assert await otp_rows(ALICE) == []


async def test_verify_succeeds_when_counter_reset_fails(client, email_sender, app, redis, load_account):
    await client.post("/api/auth/register", json={"email": ALICE})
    code = email_sender.codes[ALICE]
    app.state.redis = FailingRedis(redis, "delete")

    response = await client.post("/api/auth/verify-otp", json={"email": ALICE, "otp": code})

    assert response.status_code == 200
    assert (await load_account(ALICE)) is not None
