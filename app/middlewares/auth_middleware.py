from typing import Optional, Callable
from fastapi import Depends, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.config.settings import settings
from app.db.models import UserType
from app.utils.auth import AuthUtils
from app.utils.errors import AuthenticationError, AuthorizationError
from app.utils.responses import ResponseBuilder
from app.utils.logging import get_logger

logger = get_logger()

_USER_TYPES = {user_type.value for user_type in UserType}


class AuthState:
    """Authentication state to be stored in request.state"""

    def __init__(
        self,
        user_id: str,
        username: str,
        user_type: str,
        is_authenticated: bool = True,
    ):
        self.user_id = user_id
        self.username = username
        self.user_type = user_type
        self.is_authenticated = is_authenticated


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware for bearer JWT validation"""

    # Paths that don't require authentication
    EXCLUDED_PATHS = {
        "/docs",
        "/redoc",
        "/openapi.json",
        f"{settings.API_PREFIX}/shared/health",
    }

    def __init__(self, app, excluded_paths: Optional[set] = None):
        super().__init__(app)
        self.excluded_paths = set(self.EXCLUDED_PATHS)
        if excluded_paths:
            self.excluded_paths.update(excluded_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request through authentication middleware"""
        if self._should_skip_auth(request):
            return await call_next(request)

        try:
            request.state.auth = self._authenticate(request)
        except AuthenticationError as e:
            logger.warning(
                "Rejected unauthenticated request",
                path=request.url.path,
                reason=e.message,
            )
            return ResponseBuilder.error(
                request=request,
                message=e.message,
                error_code=e.error_code,
                status_code=401,
            )

        return await call_next(request)

    def _should_skip_auth(self, request: Request) -> bool:
        """Check if the request should skip authentication."""
        return request.method == "OPTIONS" or self._is_excluded_path(request.url.path)

    def _is_excluded_path(self, path: str) -> bool:
        """Check if path is excluded from authentication"""
        return any(path.startswith(excluded) for excluded in self.excluded_paths)

    def _authenticate(self, request: Request) -> AuthState:
        token = AuthUtils.extract_bearer_token(request.headers.get("authorization"))
        if not token:
            raise AuthenticationError("No bearer token found", "AUTH_ERROR")

        payload = AuthUtils.verify_access_token(token)
        if not payload:
            raise AuthenticationError("Invalid or expired token", "AUTH_ERROR")

        user_id = payload.get("sub")
        username = payload.get("username")
        user_type = payload.get("user_type")

        if not all([user_id, username, user_type]) or user_type not in _USER_TYPES:
            raise AuthenticationError("Invalid token claims", "AUTH_ERROR")

        return AuthState(
            user_id=str(user_id),
            username=str(username),
            user_type=str(user_type),
        )


# Dependency for getting current user from request state
def get_current_user(request: Request) -> AuthState:
    """Dependency to get current authenticated user from request state"""
    auth_state = getattr(request.state, "auth", None)

    if not auth_state or not auth_state.is_authenticated:
        raise AuthenticationError("Not authenticated", "NOT_AUTHENTICATED")

    return auth_state


# Dependency for requiring specific user types
def require_user_type(*allowed_types: str):
    """Create dependency that requires specific user types"""

    def check_user_type(
        current_user: AuthState = Depends(get_current_user),
    ) -> AuthState:
        if current_user.user_type not in allowed_types:
            raise AuthorizationError(
                "Insufficient permissions", "INSUFFICIENT_PERMISSIONS"
            )
        return current_user

    return check_user_type


# Pre-defined dependencies for common user types
require_admin = require_user_type(UserType.ADMIN.value)
require_faculty = require_user_type(UserType.FACULTY.value)
require_any_user = require_user_type(UserType.ADMIN.value, UserType.FACULTY.value)
