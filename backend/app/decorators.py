# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .services import identity_service
from .services.identity_service import AuthenticationError


def _is_authenticated() -> bool:
    return hasattr(g, 'username') and hasattr(g, 'role')


def require_auth(f):
    """
    Require a valid identity-service token.

    Sets the following Flask g attributes:
    - g.username: username from the token (sub / username claim)
    - g.role: role resolved through the configured RoleResolver

    Returns 401 when no token is supplied or the token type is wrong,
    403 when the token does not verify.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = identity_service.extract_token(
            request.headers,
            request.cookies,
            current_app.config.get("SESSION_COOKIE_NAME", "mint_session"),
        )

        try:
            principal = identity_service.authenticate(token)
        except AuthenticationError as e:
            return jsonify({"error": str(e)}), e.status_code

        g.username = principal.username
        g.role = principal.role
        g.principal = principal

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """
    Require the caller's role to be one of roles.

    Accepts role names or role groups (sets); must be stacked under
    @require_auth.
    """
    allowed = set()
    for entry in roles:
        if isinstance(entry, (set, frozenset, list, tuple)):
            allowed.update(entry)
        else:
            allowed.add(entry)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.role not in allowed:
                current_app.logger.info(
                    "Role denied: user=%s role=%s path=%s", g.username, g.role, request.path
                )
                return jsonify({
                    "error": "Insufficient permissions",
                    "required_roles": sorted(allowed),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
