from __future__ import annotations

import time

import jwt


def credential_expired(token: str, *, leeway: float = 0.0) -> bool:
    """Local expiry check of a bearer JWT.

    The signature is not verified: the backend does that. A token that cannot
    be decoded counts as expired; a token without ``exp`` never expires locally.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return True
    exp = claims.get("exp")
    if exp is None:
        return False
    try:
        return float(exp) <= time.time() - leeway
    except (TypeError, ValueError):
        return True
