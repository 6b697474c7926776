"""Password hashing and bearer-token issuance/verification."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import Settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


class TokenSubject(Protocol):
    """Anything carrying the identity a credential is bound to."""

    id: str
    email: str


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a bearer token."""

    account_id: str
    email: str
    issued_at: datetime
    expires_at: datetime


class TokenIdentityProvider:
    """Issue and verify self-signed JWT bearer credentials.

    Verification is local (signature and `exp`), so protected requests never
    need a store round trip just to authenticate.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", expires_delta: timedelta = timedelta(days=7)):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expires_delta = expires_delta

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenIdentityProvider":
        return cls(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )

    def issue(self, subject: TokenSubject) -> str:
        """Mint a token bound to the account id and email."""
        issued_at = datetime.now(timezone.utc)
        claims = {
            "sub": str(subject.id),
            "email": subject.email,
            "iat": issued_at,
            "exp": issued_at + self.expires_delta,
        }
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims | None:
        """Return the token's claims, or None for any tampered, expired or malformed token."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None

        account_id = payload.get("sub")
        email = payload.get("email")
        exp = payload.get("exp")
        if not account_id or not email or exp is None:
            return None

        iat = payload.get("iat", exp)
        return TokenClaims(
            account_id=account_id,
            email=email,
            issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )
