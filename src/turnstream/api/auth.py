"""Resolve the calling user from a bearer API key."""

from __future__ import annotations

import secrets
from typing import Mapping, Optional

from fastapi import Header, HTTPException, Request

from turnstream.errors import AuthenticationError


def resolve_user(authorization: Optional[str], api_keys: Mapping[str, str]) -> str:
    """Map an ``Authorization: Bearer <key>`` header to a user id."""
    if not authorization:
        raise AuthenticationError("missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AuthenticationError("expected a bearer token")
    token = token.strip()
    for key, user_id in api_keys.items():
        if secrets.compare_digest(key.encode("utf-8"), token.encode("utf-8")):
            return user_id
    raise AuthenticationError("unknown API key")


def get_current_user(request: Request, authorization: Optional[str] = Header(None)) -> str:
    """FastAPI dependency: raise 401 if no user can be resolved."""
    api_keys = request.app.state.services.config.auth.api_keys
    try:
        return resolve_user(authorization, api_keys)
    except AuthenticationError:
        raise HTTPException(status_code=401, detail="Unauthorized")
