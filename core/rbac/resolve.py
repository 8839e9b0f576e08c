"""
Role resolution for incoming requests.

Verifies the Supabase access token carried in the Authorization header and
loads the caller's profile row. Anything that cannot be verified resolves
to an anonymous user with the `user` role and no user type.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

import jwt

from core.profiles import UserProfile

logger = logging.getLogger(__name__)

SUPABASE_AUDIENCE = "authenticated"

ProfileLoader = Callable[[str], Optional[Mapping[str, Any]]]


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class ResolvedUser:
    """Resolved user identity, profile, and roles."""
    user_id: Optional[str]
    email: Optional[str]
    profile: UserProfile
    auth_method: str  # 'jwt' or 'anonymous'
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def roles(self) -> List[str]:
        return [self.profile.role.value]

    @property
    def is_anonymous(self) -> bool:
        return self.auth_method == 'anonymous'

    @property
    def is_authenticated(self) -> bool:
        return not self.is_anonymous


# ============================================================================
# Role Resolver
# ============================================================================

class RoleResolver:
    """
    Resolves user identity from a Supabase JWT and a profile loader.

    The profile loader receives the verified user id and returns the
    `profiles` row (or None). A loader failure keeps the user authenticated
    but with a default profile, so identity never depends on the database.
    """

    def __init__(
        self,
        supabase_jwt_secret: Optional[str] = None,
        profile_loader: Optional[ProfileLoader] = None,
        audience: str = SUPABASE_AUDIENCE,
    ):
        """
        Initialize role resolver.

        Args:
            supabase_jwt_secret: Secret for verifying Supabase JWT tokens
            profile_loader: Callable loading a `profiles` row by user id
            audience: Expected `aud` claim
        """
        self.supabase_jwt_secret = supabase_jwt_secret
        self.profile_loader = profile_loader
        self.audience = audience

    def resolve_from_request(self, authorization_header: Optional[str] = None) -> ResolvedUser:
        """
        Resolve the caller from the Authorization header value.

        Args:
            authorization_header: e.g. "Bearer <token>"

        Returns:
            ResolvedUser, anonymous when the token is missing or invalid
        """
        if authorization_header:
            logger.debug("Attempting JWT authentication")
            user = self._resolve_from_jwt(authorization_header)
            if user:
                return user

        logger.debug("Falling back to anonymous user")
        return self._resolve_anonymous()

    def _decode(self, authorization_header: str) -> Optional[Dict[str, Any]]:
        if not authorization_header.startswith("Bearer "):
            logger.warning("Invalid Authorization header format (missing 'Bearer')")
            return None

        token = authorization_header[7:].strip()
        if not token:
            logger.warning("Empty JWT token")
            return None

        if not self.supabase_jwt_secret:
            logger.warning("No Supabase JWT secret configured, skipping JWT verification")
            return None

        try:
            return jwt.decode(
                token,
                self.supabase_jwt_secret,
                algorithms=["HS256"],
                audience=self.audience,
                options={"verify_exp": True},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("JWT token has expired")
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid JWT token: {e}")
        return None

    def _resolve_from_jwt(self, authorization_header: str) -> Optional[ResolvedUser]:
        payload = self._decode(authorization_header)
        if payload is None:
            return None

        user_id = payload.get("sub")
        if not user_id:
            logger.warning("JWT token missing 'sub' claim")
            return None

        email = payload.get("email")
        profile = self._load_profile(user_id, email)

        logger.debug(f"Resolved user from JWT: user_id={user_id}, role={profile.role.value}")

        return ResolvedUser(
            user_id=user_id,
            email=email,
            profile=profile,
            auth_method='jwt',
            metadata={
                'token_issued_at': payload.get('iat'),
                'token_expires_at': payload.get('exp'),
            },
        )

    def _load_profile(self, user_id: str, email: Optional[str]) -> UserProfile:
        default = UserProfile(id=user_id, email=email)
        if self.profile_loader is None:
            return default

        try:
            row = self.profile_loader(user_id)
        except Exception as e:
            logger.error(f"Profile lookup failed for user_id={user_id}: {e}", exc_info=True)
            return default

        if not row:
            logger.info(f"No profile row for user_id={user_id}, using defaults")
            return default

        data = dict(row)
        data.setdefault("id", user_id)
        data.setdefault("email", email)
        return UserProfile.from_row(data)

    def _resolve_anonymous(self) -> ResolvedUser:
        return ResolvedUser(
            user_id=None,
            email=None,
            profile=UserProfile.anonymous(),
            auth_method='anonymous',
        )


# ============================================================================
# Global Resolver Instance
# ============================================================================

_global_resolver: Optional[RoleResolver] = None


def get_resolver() -> RoleResolver:
    """
    Get the global role resolver instance.

    An unconfigured resolver has no secret and resolves everyone as
    anonymous.
    """
    global _global_resolver

    if _global_resolver is None:
        logger.warning("Using default role resolver (not configured)")
        _global_resolver = RoleResolver()

    return _global_resolver


def configure_resolver(
    supabase_jwt_secret: Optional[str] = None,
    profile_loader: Optional[ProfileLoader] = None,
) -> RoleResolver:
    """Configure the global role resolver."""
    global _global_resolver

    _global_resolver = RoleResolver(
        supabase_jwt_secret=supabase_jwt_secret,
        profile_loader=profile_loader,
    )

    logger.info("Configured global role resolver")
    return _global_resolver


def reset_resolver():
    """Reset the global resolver (useful for testing)."""
    global _global_resolver
    _global_resolver = None
