"""Bearer token verification for API callers."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from fastapi import status
from jose import JWTError, jwt

logger = logging.getLogger("auth")


class UnauthorizedError(Exception):
    """Raised when a request does not carry a verifiable identity."""

    def __init__(self, message: str, status_code: int = status.HTTP_401_UNAUTHORIZED) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class AuthenticatedIdentity:
    uid: str
    email: Optional[str] = None


class JWTIdentityVerifier:
    """Verifies signed ID tokens and extracts ``{uid, email}``."""

    def __init__(
        self,
        secret: str,
        *,
        algorithms: Sequence[str] = ("HS256",),
        audience: Optional[str] = None,
        issuer: Optional[str] = None,
    ) -> None:
        if not secret:
            raise ValueError("secret must be provided")
        self._secret = secret
        self._algorithms = list(algorithms)
        self._audience = audience
        self._issuer = issuer

    def verify(self, token: str) -> AuthenticatedIdentity:
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=self._algorithms,
                audience=self._audience,
                issuer=self._issuer,
                options={"verify_aud": self._audience is not None},
            )
        except JWTError as exc:
            logger.info("Rejected ID token: %s", exc)
            raise UnauthorizedError("Unauthorized: Invalid token.") from exc

        uid = claims.get("uid") or claims.get("sub")
        if not uid:
            raise UnauthorizedError("Unauthorized: Token has no subject.")
        email = claims.get("email")
        return AuthenticatedIdentity(uid=str(uid), email=str(email).lower() if email else None)


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Return the token of an ``Authorization: Bearer <token>`` header."""

    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Missing Authorization bearer token.")
    token = authorization[len("Bearer "):].strip()
    if not token:
        raise UnauthorizedError("Invalid Authorization header format.")
    return token


def authenticate(authorization: Optional[str], verifier: Optional[JWTIdentityVerifier] = None) -> AuthenticatedIdentity:
    """Resolve the caller of a request from its ``Authorization`` header."""

    token = extract_bearer_token(authorization)
    if verifier is None:
        from ...app_context import get_identity_verifier

        verifier = get_identity_verifier()
    return verifier.verify(token)


def create_id_token(
    secret: str,
    *,
    uid: str,
    email: Optional[str] = None,
    algorithm: str = "HS256",
) -> str:
    """Issue a token accepted by :class:`JWTIdentityVerifier` (local tooling and tests)."""

    claims = {"sub": uid}
    if email:
        claims["email"] = email
    return jwt.encode(claims, secret, algorithm=algorithm)


__all__ = [
    "AuthenticatedIdentity",
    "JWTIdentityVerifier",
    "UnauthorizedError",
    "authenticate",
    "create_id_token",
    "extract_bearer_token",
]
