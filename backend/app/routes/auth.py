# backend/app/routes/auth.py
"""
Identity endpoints.

Tokens are issued by the external identity service; these routes only
report who the verified caller is.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..services import identity_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.get("/me")
@require_auth
def me():
    """
    Current user.

    Returns:
        {username, role, full_name, email}; profile fields are null when
        the identity service cannot supply them.
    """
    profile = identity_service.fetch_profile(request.headers.get("Cookie", ""))
    return jsonify({
        **g.principal.to_dict(),
        "full_name": profile.get("full_name"),
        "email": profile.get("email"),
    })


@auth_bp.post("/verify")
@require_auth
def verify():
    """Token check for reverse-proxy auth_request subrequests."""
    return jsonify(g.principal.to_dict())
