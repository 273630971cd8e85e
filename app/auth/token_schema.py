from __future__ import annotations

from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel

from app.core.config import settings

# auto_error=False: missing credentials are reported by our own AuthError, and
# endpoints with optional authentication still run
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


class Token(BaseModel):
    """
    Access token returned by the OAuth2 password flow.

    Attributes:
        access_token (str): The JWT issued to the user.
        token_type (str): Always "bearer".
    """

    access_token: str
    token_type: str = settings.TOKEN_TYPE


class TokenData(BaseModel):
    """
    Claims the application relies on once a token has been verified.

    Attributes:
        user_id (int): Id of the user the token was issued to.
    """

    user_id: int
