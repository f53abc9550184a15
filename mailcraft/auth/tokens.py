from __future__ import annotations

import time
from typing import Any, Dict, Optional
import logging

import httpx
from jose import jwk, jwt
from jose.exceptions import JWTError, JWSError
from fastapi import HTTPException, status

from mailcraft.config import settings


logger = logging.getLogger("auth.tokens")


class _JWKSCache:
    def __init__(self) -> None:
        self.jwks: Optional[Dict[str, Any]] = None
        self.cached_at: float = 0.0
        self.ttl_seconds: int = 300

    def get(self) -> Optional[Dict[str, Any]]:
        if self.jwks and (time.time() - self.cached_at) < self.ttl_seconds:
            return self.jwks
        return None

    def set(self, jwks: Optional[Dict[str, Any]]) -> None:
        self.jwks = jwks
        self.cached_at = time.time()


_cache = _JWKSCache()


def _fetch_jwks() -> Dict[str, Any]:
    cached = _cache.get()
    if cached:
        return cached
    try:
        resp = httpx.get(settings.AUTH_JWKS_URL, timeout=10)
        resp.raise_for_status()
        data = resp.json()
        _cache.set(data)
        return data
    except httpx.HTTPError as exc:
        logger.exception("JWKS fetch failed", extra={"jwks_url": settings.AUTH_JWKS_URL})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to fetch signing keys",
        ) from exc


def _find_key(jwks: Dict[str, Any], kid: str) -> Optional[Dict[str, Any]]:
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key
    return None


def _get_public_key(token: str) -> Dict[str, Any]:
    try:
        headers = jwt.get_unverified_header(token)
    except JWTError as exc:
        logger.warning("Invalid token header", exc_info=exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc
    kid = headers.get("kid")
    if not kid:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing kid in token")
    key = _find_key(_fetch_jwks(), kid)
    if key:
        return key
    # cache miss; refetch once in case the keys rotated
    _cache.set(None)
    key = _find_key(_fetch_jwks(), kid)
    if key:
        return key
    logger.warning("Signing key not found", extra={"kid": kid})
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Signing key not found")


def _check_audience(claims: Dict[str, Any]) -> None:
    allowed = settings.AUTH_AUDIENCE
    if not allowed:
        return
    aud = claims.get("aud")
    token_audiences = [aud] if isinstance(aud, str) else list(aud or [])
    if not any(item in allowed for item in token_audiences):
        logger.warning("Token audience rejected", extra={"aud": aud, "sub": claims.get("sub")})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token audience")


def verify_access_token(token: str) -> Dict[str, Any]:
    """Verify a bearer token and return its claims.

    Tokens are checked against the JWKS endpoint when one is configured (RS256),
    otherwise against the shared HS256 secret. Audience is checked separately
    because several audiences may be accepted.
    """
    if not settings.AUTH_JWKS_URL and not settings.AUTH_JWT_SECRET:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication is not configured",
        )
    options = {"verify_aud": False}
    try:
        if settings.AUTH_JWKS_URL:
            public_key = _get_public_key(token)
            key = jwk.construct(public_key)
            claims = jwt.decode(
                token,
                key=key.to_pem().decode(),
                algorithms=[public_key.get("alg", "RS256")],
                issuer=settings.AUTH_JWT_ISSUER,
                options=options,
            )
        else:
            claims = jwt.decode(
                token,
                key=settings.AUTH_JWT_SECRET,
                algorithms=["HS256"],
                issuer=settings.AUTH_JWT_ISSUER,
                options=options,
            )
    except (JWTError, JWSError, ValueError) as exc:
        logger.warning("Token verification failed", exc_info=exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    _check_audience(claims)
    logger.debug(
        "Verified access token",
        extra={"aud": claims.get("aud"), "iss": claims.get("iss"), "sub": claims.get("sub")},
    )
    return claims
