"""
Routes for the auth blueprint — registration, login, logout, profile.

Sessions are cookie-based through Flask-Login. A development-only
``/dev-login`` route signs in as the first active user of a role
without a password when ``DEV_LOGIN_ENABLED`` is set.
"""

from flask import current_app, request
from flask_login import current_user, login_required, login_user, logout_user

from app.blueprints.auth import bp
from app.decorators import json_body, ok
from app.errors import AuthenticationError, NotFoundError
from app.extensions import db
from app.services import audit_service, user_service


@bp.route("/register", methods=["POST"])
def register():
    """Create an owner or client account and sign it in."""
    user = user_service.register_user(json_body())
    login_user(user)
    return ok(user.to_dict(), 201)


@bp.route("/login", methods=["POST"])
def login():
    """
    Verify email and password and start a session.

    Lockout and deactivation are enforced by the user service; both
    surface as AuthenticationError.
    """
    data = json_body()
    try:
        user = user_service.authenticate(data.get("email", ""), data.get("password", ""))
    except AuthenticationError as exc:
        # Failed logins are 401, not the 403 used for forbidden actions.
        return exc.to_dict(), 401
    login_user(user, remember=bool(data.get("remember")))
    return ok(user.to_dict())


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """End the current session."""
    audit_service.log_logout(current_user.id)
    db.session.commit()
    logout_user()
    return ok()


@bp.route("/me")
@login_required
def me():
    """Return the signed-in user's profile."""
    return ok(current_user.to_dict())


# =========================================================================
# Development-Only Routes
# =========================================================================


@bp.route("/dev-login", methods=["POST"])
def dev_login():
    """
    Development-only login bypass.

    Query Parameters:
        role (str):     Role to sign in as. Defaults to ``admin``.
        user_id (int):  Specific user ID; takes precedence over ``role``.
    """
    if not current_app.config.get("DEV_LOGIN_ENABLED"):
        raise NotFoundError("Not found.")

    # Import models inside the route to avoid circular imports.
    from app.models.user import User  # pylint: disable=import-outside-toplevel

    user_id_param = request.args.get("user_id", type=int)
    role_param = request.args.get("role", "admin").strip().lower()

    query = User.query.filter(User.is_active == True)  # noqa: E712  pylint: disable=singleton-comparison
    if user_id_param is not None:
        target_user = query.filter(User.id == user_id_param).first()
    else:
        target_user = query.filter(User.role == role_param).order_by(User.id).first()

    if target_user is None:
        raise NotFoundError(
            f"No active user found. Run: flask seed-dev-user --role {role_param}"
        )

    login_user(target_user)
    return ok(target_user.to_dict())
