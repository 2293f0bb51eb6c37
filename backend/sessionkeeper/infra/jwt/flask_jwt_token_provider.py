# sessionkeeper/infra/jwt/flask_jwt_token_provider.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, cast

from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import ExpiredSignatureError, PyJWTError

from sessionkeeper.services._shared.errors import InvalidToken
from sessionkeeper.services._shared.ports import CredentialClaims, TokenProvider

# Registered claims that are not copied into ``CredentialClaims.extra``
_RESERVED = frozenset({"sub", "jti", "exp", "iat", "nbf", "type", "fresh", "csrf"})


@dataclass(slots=True)
class JWTTokenProvider(TokenProvider):
    """
    Adapter for Flask-JWT-Extended.

    .. note::
       Requires an active Flask app context with proper JWT settings.
    """

    def issue(
        self,
        *,
        user_id: str,
        expires_delta: timedelta,
        claims: dict[str, Any] | None = None,
    ) -> str:
        return cast(
            str,
            create_access_token(
                identity=str(user_id),
                additional_claims=dict(claims or {}),
                expires_delta=expires_delta,
            ),
        )

    def verify(self, token: str) -> CredentialClaims:
        try:
            payload = cast(dict[str, Any], decode_token(token))
        except ExpiredSignatureError as exc:
            raise InvalidToken("Access token expired.") from exc
        except (PyJWTError, JWTExtendedException) as exc:
            raise InvalidToken("Invalid access token.") from exc

        if payload.get("type") != "access":
            raise InvalidToken("Not an access token.")

        return CredentialClaims(
            user_id=str(payload["sub"]),
            jti=cast(str, payload["jti"]),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=UTC),
            extra={k: v for k, v in payload.items() if k not in _RESERVED},
        )
