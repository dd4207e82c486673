from __future__ import annotations

from uuid import UUID

import jwt

from dm_service.application.dto.principal import Principal


class HS256Verifier:
    """Verify access tokens signed by the auth platform with a shared secret."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        audience: str | None = None,
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._audience = audience

    async def verify(self, token: str) -> Principal:
        payload = jwt.decode(
            token,
            self._secret,
            algorithms=[self._algorithm],
            audience=self._audience,
            options={"verify_aud": self._audience is not None, "require": ["sub"]},
        )
        try:
            user_id = UUID(str(payload["sub"]))
        except ValueError as exc:
            raise jwt.InvalidTokenError("Subject is not a user id") from exc
        return Principal(user_id=user_id, role=payload.get("role", "authenticated"))
