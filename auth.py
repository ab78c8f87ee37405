from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import get_settings
from errors import AuthenticationError


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.token_secret, salt="identity-token")


def issue_identity_token(user_id: int) -> str:
    return _serializer().dumps({"u": user_id})


def verify_identity_token(token: str, max_age_days: Optional[int] = None) -> int:
    """Return the user id carried by ``token``.

    Raises ``AuthenticationError`` for forged, malformed or expired tokens.
    """
    if max_age_days is None:
        max_age_days = get_settings().token_max_age_days
    try:
        data = _serializer().loads(token, max_age=max_age_days * 86400)
    except SignatureExpired as exc:
        raise AuthenticationError("Token expired") from exc
    except BadSignature as exc:
        raise AuthenticationError("Invalid token") from exc

    user_id = data.get("u") if isinstance(data, dict) else None
    if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id <= 0:
        raise AuthenticationError("Invalid token")
    return user_id


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise AuthenticationError("Not authorized, no token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Not authorized, no token")
    return token.strip()
