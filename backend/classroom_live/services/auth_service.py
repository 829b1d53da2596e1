"""Authentication service: validates JWT access tokens issued by the identity provider."""

from jose import JWTError, jwt

from classroom_live.config import settings


def decode_access_token(token: str) -> dict:
    """Decode and validate a JWT token. Raises JWTError on failure."""
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    if payload.get("type") != "access":
        raise JWTError("Invalid token type")
    return payload


def user_id_from_token(token: str) -> int:
    """Resolve the subject of an access token. Raises JWTError on failure."""
    payload = decode_access_token(token)
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError) as exc:
        raise JWTError("Invalid token subject") from exc
