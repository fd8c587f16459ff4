"""
Signed bearer tokens.

Two kinds of HS256 JWTs are issued with the same secret and told apart by
their audience: admin session tokens (``aud=admin``, carry the admin id and
username) and download tokens (``aud=download``, scoped to one drop).
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone

import jwt

from .errors import Unauthorized

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ADMIN_AUDIENCE = "admin"
DOWNLOAD_AUDIENCE = "download"


class TokenIssuer:
    def __init__(self, secret: str | None, admin_ttl: int = 86400, download_ttl: int = 900):
        if not secret:
            logger.warning("JWT_SECRET is not set; using a random secret, tokens will not survive a restart")
            secret = secrets.token_urlsafe(48)
        self._secret = secret
        self.admin_ttl = admin_ttl
        self.download_ttl = download_ttl

    def _encode(self, claims: dict, audience: str, ttl: int) -> str:
        now = datetime.now(timezone.utc)
        payload = {**claims, "aud": audience, "iat": now, "exp": now + timedelta(seconds=ttl)}
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def _decode(self, token: str | None, audience: str) -> dict:
        if not token:
            raise Unauthorized()
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                audience=audience,
                options={"require": ["exp", "aud"]},
            )
        except jwt.InvalidTokenError:
            raise Unauthorized("Invalid or expired token.")

    # ---- Admin sessions ----

    def issue_admin_token(self, admin: dict) -> str:
        return self._encode({"id": admin["id"], "username": admin["username"]}, ADMIN_AUDIENCE, self.admin_ttl)

    def authorize_admin(self, token: str | None) -> dict:
        """Return ``{id, username}`` for a valid admin token.

        Malformed, expired, badly signed and wrong-audience tokens all raise
        the same ``Unauthorized``.
        """
        claims = self._decode(token, ADMIN_AUDIENCE)
        if "id" not in claims or "username" not in claims:
            raise Unauthorized("Invalid or expired token.")
        return {"id": claims["id"], "username": claims["username"]}

    # ---- Download tokens ----

    def issue_download_token(self, short_id: str) -> str:
        return self._encode({"sub": short_id}, DOWNLOAD_AUDIENCE, self.download_ttl)

    def check_download_token(self, token: str | None, short_id: str) -> bool:
        try:
            claims = self._decode(token, DOWNLOAD_AUDIENCE)
        except Unauthorized:
            return False
        return claims.get("sub") == short_id
