"""JWT Token Validation for the hosted auth provider (HS256 shared secret)"""
import jwt
from typing import Any, Dict, Optional, TYPE_CHECKING

from ..config.settings import settings
from ..domain.errors import AuthenticationError
from ..domain.models import ActorContext
from .logger import get_logger

if TYPE_CHECKING:
    from ..repositories.profile_repo import ProfileRepository

logger = get_logger(__name__)


class JWTValidator:
    """Validates access tokens and resolves the acting user"""

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        audience: Optional[str] = None
    ):
        self._secret = secret or settings.jwt_secret
        self._algorithm = algorithm or settings.jwt_algorithm
        self._audience = audience if audience is not None else settings.jwt_audience

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate a bearer token

        Args:
            token: Bearer token (with or without 'Bearer ' prefix)

        Returns:
            Decoded token claims

        Raises:
            AuthenticationError: If token is invalid
        """
        if not token:
            raise AuthenticationError("Token is missing")

        if token.startswith("Bearer "):
            token = token[7:]

        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience or None,
                options={
                    "verify_exp": True,
                    "verify_aud": bool(self._audience),
                    "require": ["sub"],
                }
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Token expired")
            raise AuthenticationError("Token has expired")
        except jwt.InvalidAudienceError as e:
            logger.warning(f"Invalid token audience: {e}")
            raise AuthenticationError("Invalid token audience")
        except jwt.PyJWTError as e:
            logger.warning(f"JWT validation error: {e}")
            raise AuthenticationError(f"Invalid token: {str(e)}")

    def get_actor_context(self, token: str, profile_repo: "ProfileRepository") -> ActorContext:
        """
        Build the actor from a validated token and the user's profile

        The administrator flag comes from the profile's user_type, never from
        token claims.
        """
        from ..engine.permission_guard import is_admin_user_type

        claims = self.validate_token(token)
        user_id = claims["sub"]
        email = claims.get("email")

        profile = profile_repo.get_profile(user_id)
        if profile is None:
            logger.warning(f"No profile for authenticated user {user_id}", extra={"user_id": user_id})
            return ActorContext(user_id=user_id, email=email, display_name=email or user_id)

        return ActorContext(
            user_id=user_id,
            email=profile.email or email,
            display_name=profile.full_name or email or user_id,
            user_type=profile.user_type,
            is_admin=is_admin_user_type(profile.user_type)
        )


# Global validator instance
_jwt_validator: Optional[JWTValidator] = None


def get_jwt_validator() -> JWTValidator:
    """Get global JWT validator instance"""
    global _jwt_validator
    if _jwt_validator is None:
        _jwt_validator = JWTValidator()
    return _jwt_validator


def get_current_user(authorization: str, profile_repo: "ProfileRepository") -> ActorContext:
    """Get current user from authorization header"""
    if not authorization:
        raise AuthenticationError("Authorization header is missing")
    return get_jwt_validator().get_actor_context(authorization, profile_repo)
