"""
Session tokens and Discord OAuth2.

Tokens are HS256 JWTs signed with JWT_SECRET carrying ``userId`` and
``discordId``. Discord is only contacted during login.
"""
from datetime import timedelta
from urllib.parse import urlencode
import httpx
import jwt
from fastapi import HTTPException, status

from personalsystem.core import config
from personalsystem.utils import get_logger, utcnow


log = get_logger(__name__)

DISCORD_SCOPES = "identify email guilds"


class DiscordAuthError(Exception):
    """Discord rejected the code or returned an unusable response."""


def create_access_token(user_id: str, discord_id: str) -> str:
    """Issue a session token valid for JWT_EXPIRE_DAYS days."""
    now = utcnow()
    payload = {
        "userId": user_id,
        "discordId": discord_id,
        "iat": now,
        "exp": now + timedelta(days=config.JWT_EXPIRE_DAYS),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def verify_jwt_token(token: str) -> dict:
    """
    Verify a session token and return its payload.

    Raises:
        HTTPException: 401 if the token is invalid or expired
    """
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def user_id_from_token(token: str | None) -> str | None:
    """Best-effort user id lookup, None for missing or invalid tokens."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None
    return payload.get("userId")


def discord_authorize_url(state: str | None = None) -> str:
    params = {
        "client_id": config.DISCORD_CLIENT_ID or "",
        "redirect_uri": config.DISCORD_REDIRECT_URI or "",
        "response_type": "code",
        "scope": DISCORD_SCOPES,
    }
    if state:
        params["state"] = state
    return f"https://discord.com/oauth2/authorize?{urlencode(params)}"


def discord_avatar_url(discord_user: dict) -> str | None:
    avatar = discord_user.get("avatar")
    if not avatar:
        return None
    return f"{config.DISCORD_CDN}/avatars/{discord_user['id']}/{avatar}.png"


async def exchange_discord_code(code: str) -> dict:
    """
    Trade an OAuth2 authorization code for the Discord user object.

    Raises:
        DiscordAuthError: on any non-2xx response from Discord
    """
    async with httpx.AsyncClient(base_url=config.DISCORD_API, timeout=10.0) as client:
        token_response = await client.post(
            "/oauth2/token",
            data={
                "client_id": config.DISCORD_CLIENT_ID,
                "client_secret": config.DISCORD_CLIENT_SECRET,
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": config.DISCORD_REDIRECT_URI,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if token_response.is_error:
            log.warning("Discord token exchange failed: %s", token_response.status_code)
            raise DiscordAuthError("Could not exchange Discord code")
        access_token = token_response.json().get("access_token")

        user_response = await client.get(
            "/users/@me", headers={"Authorization": f"Bearer {access_token}"}
        )
        if user_response.is_error:
            log.warning("Discord user lookup failed: %s", user_response.status_code)
            raise DiscordAuthError("Could not fetch Discord user")
        return user_response.json()
