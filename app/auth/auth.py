"""Password hashing and access token issuing / verification."""

from datetime import UTC
from datetime import datetime
from datetime import timedelta

import jwt
from jwt.exceptions import InvalidTokenError
from passlib.context import CryptContext

from app.auth.token_schema import TokenData
from app.core.config import settings
from app.core.errors import AuthError

pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS
)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """
    Verifies if the plain password matches the hashed password.

    Args:
        plain_password (str): The plain text password that needs to be verified.
        hashed_password (str): The hashed password stored in the database.

    Returns:
        bool: True if passwords match, False otherwise.
    """
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    """
    Creates a signed JWT whose subject is the user id.

    Args:
        user_id (int): Id of the user the token is issued to.
        expires_delta (timedelta, optional): Lifetime of the token. Defaults to
            ``ACCESS_TOKEN_EXPIRE_MINUTES``.

    Returns:
        str: The encoded JWT token.
    """
    now = datetime.now(UTC)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": expire,
        "iss": settings.TOKEN_ISSUER,
        "aud": settings.TOKEN_AUDIENCE,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> TokenData:
    """
    Verify signature, expiry, issuer and audience of ``token``.

    Raises:
        AuthError: The token is malformed, expired or not ours.
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            audience=settings.TOKEN_AUDIENCE,
            issuer=settings.TOKEN_ISSUER,
            options={"require": ["sub", "exp"]},
        )
        return TokenData(user_id=int(payload["sub"]))
    except jwt.ExpiredSignatureError as err:
        raise AuthError("Token expired.") from err
    except (InvalidTokenError, ValueError) as err:
        raise AuthError("Invalid token.") from err
