# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

SECURITY FEATURES:
- Failed logins are written to security_events
- Session tokens are bearer tokens, revoked on logout
- Self-registration is disabled: users are created by shop admins
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..models import Role, User
from ..services import auth_service, permission_service, session_service
from ..services.auth_service import PasswordValidationError
from ..validation import ValidationError, parse_optional_email, text_rule
from ._common import json_body


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Body: {"username" | "email" | "identifier", "password", "shop_id"?}
    """
    try:
        data = json_body()
        identifier = data.get("username") or data.get("email") or data.get("identifier")
        password = data.get("password")

        if not all([identifier, password]):
            return jsonify({"error": "username/email and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(identifier, password, shop_id=data.get("shop_id"))

        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource=request.path,
                action="LOGIN",
                reason=f"Invalid credentials for {str(identifier)[:100]}",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        try:
            session, token = session_service.create_session(
                user_id=user.id,
                user_agent=user_agent,
                ip_address=ip_address,
            )
        except ValueError as e:
            return jsonify({"error": str(e)}), 401

        return jsonify({
            "user": user.to_dict(),
            "roles": permission_service.get_user_role_names(user.id),
            "permissions": sorted(permission_service.get_user_permissions(user.id)),
            "token": token,
            "session": session.to_dict(),
            "shop_id": session.shop_id,
            "message": "Login successful",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the caller's session token."""
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authorization header required"}), 401

        token = auth_header.split(" ", 1)[1]
        context = session_service.validate_session(token)

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        if context is not None:
            permission_service.log_security_event(
                user_id=context.user.id,
                event_type="LOGOUT",
                success=True,
                resource=request.path,
                action="LOGOUT",
                ip_address=request.remote_addr,
                user_agent=request.headers.get("User-Agent"),
                shop_id=context.shop_id,
            )

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user, roles, effective permissions and shop."""
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "roles": permission_service.get_user_role_names(user.id),
        "permissions": sorted(permission_service.get_user_permissions(user.id)),
        "shop": user.shop.to_dict() if user.shop else None,
        "shop_id": g.shop_id,
    }), 200


@auth_bp.post("/users")
@require_auth
@require_permission("MANAGE_USERS")
def create_user_route():
    """
    Create a user in the caller's shop and assign a role.

    Body: {"username", "email", "password", "full_name"?, "role"?}
    role defaults to salesperson.
    """
    data = json_body()

    try:
        username = text_rule(3, 80)("username", data.get("username") or "")
        email = parse_optional_email("email", data.get("email"))
        if not email:
            raise ValidationError("email is required")
        full_name = data.get("full_name")
        role_name = data.get("role") or "salesperson"
        if not Role.query.filter_by(shop_id=g.shop_id, name=role_name).first():
            raise ValidationError(f"Role {role_name} not found")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        user = auth_service.create_user(
            username=username,
            email=email,
            password=data.get("password") or "",
            shop_id=g.shop_id,
            full_name=full_name,
        )
        auth_service.assign_role(user.id, role_name)
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "user": user.to_dict(),
        "roles": permission_service.get_user_role_names(user.id),
    }), 201


@auth_bp.get("/users")
@require_auth
@require_permission("VIEW_USERS")
def list_users_route():
    users = User.query.filter_by(shop_id=g.shop_id).order_by(User.username.asc()).all()
    return jsonify({
        "items": [
            {**u.to_dict(), "roles": permission_service.get_user_role_names(u.id)}
            for u in users
        ],
        "count": len(users),
    }), 200
