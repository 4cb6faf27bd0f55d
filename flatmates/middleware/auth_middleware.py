import logging

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError
from pymongo.database import Database

from flatmates.db import get_db
from flatmates.exceptions import AuthError, NotFoundError
from flatmates.models.user import AuthenticatedUser
from flatmates.repositories.users import UserRepository
from flatmates.utils.security import decode_access_token

logger = logging.getLogger("uvicorn.error")

bearer_scheme = HTTPBearer(auto_error=False)


def authenticate_token(token: str, db: Database) -> AuthenticatedUser:
    """Identity behind a bearer token; AuthError if the token or its user is no good."""
    try:
        payload = decode_access_token(token)
    except ExpiredSignatureError:
        raise AuthError("Token has expired")
    except JWTError:
        raise AuthError("Token is not valid")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthError("Token is not valid")

    try:
        user = UserRepository(db).get(user_id, {"password": 0, "notifications": 0})
    except NotFoundError:
        logger.warning("Token for unknown user %s", user_id)
        raise AuthError("Token is not valid")
    return AuthenticatedUser.from_document(user)


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Database = Depends(get_db),
) -> AuthenticatedUser:
    """Resolve the bearer token to a user, or stop the request with a 401.

    The token is checked before the store is touched, so a request without
    a valid signature never reaches the database.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthError("No token, authorization denied")

    identity = authenticate_token(credentials.credentials, db)
    request.state.user = identity
    return identity
