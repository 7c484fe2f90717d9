from __future__ import annotations

from jose import JWTError, jwt

from ..config import settings
from ..errors import AuthenticationError


class AuthService:
    @classmethod
    def user_id_from_token(cls, token: str) -> str:
        """Return the user id carried by a signed bearer token.

        Raises:
            AuthenticationError: bad signature, expired, or no user claim.
        """
        try:
            payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        except JWTError as exc:
            raise AuthenticationError(str(exc)) from exc
        user_id = payload.get("userId") or payload.get("sub")
        if not user_id:
            raise AuthenticationError("Token carries no user id")
        return str(user_id)

    @classmethod
    def issue_token(cls, user_id: str) -> str:
        return jwt.encode({"userId": user_id}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
