# flatmates/utils/oauth.py

import logging

from google.oauth2 import id_token
from google.auth.transport import requests

from flatmates import config
from flatmates.models.user import GoogleUser

logger = logging.getLogger("uvicorn.error")


def get_google_user_info(token: str) -> GoogleUser | None:
    """
    Verifies a Google ID Token and returns the user's information.
    Checks the signature, the expiry and that it was issued to our Web Client ID.
    """
    if not config.GOOGLE_WEB_CLIENT_ID:
        logger.error("GOOGLE_CLIENT_ID is not set; Google sign-in is disabled")
        return None
    try:
        id_info = id_token.verify_oauth2_token(
            token, requests.Request(), config.GOOGLE_WEB_CLIENT_ID
        )
    except ValueError as e:
        # invalid token, expired token, or wrong Client ID
        logger.warning("Google ID Token verification error: %s", e)
        return None

    if not id_info.get("email"):
        return None
    return GoogleUser(
        email=id_info["email"],
        name=id_info.get("name") or id_info["email"].split("@")[0],
        sub=id_info["sub"],
        picture=id_info.get("picture"),
    )
