from uuid import UUID

from fastapi import Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt

from core.constants import JWT_ALGORITHM
from core.environment import settings
from core.exceptions import UnauthorizedException
from core.logger import app_logger


oauth_scheme = HTTPBearer()


async def verify_access_token(
    request: Request,
    token: HTTPAuthorizationCredentials = Security(oauth_scheme),
):
    """Validates the bearer token and stores the acting user id on the request."""
    try:
        claims: dict = jwt.decode(
            token.credentials, settings.ACCESS_TOKEN_SECRET, algorithms=[JWT_ALGORITHM]
        )
        user_id = UUID(str(claims["id"]))
    except jwt.InvalidTokenError as exc:
        app_logger.debug("Invalid Token")
        app_logger.debug(f"Error: {exc}")
        raise UnauthorizedException()
    except (KeyError, ValueError):
        app_logger.debug("No user id found in token")
        raise UnauthorizedException()

    request.state.user_id = user_id


def create_access_token(user_id: UUID, **claims) -> str:
    return jwt.encode(
        {"id": str(user_id), **claims}, settings.ACCESS_TOKEN_SECRET, algorithm=JWT_ALGORITHM
    )
