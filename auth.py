"""
User Authentication — credential store and Flask-Login blueprint.

Accounts live in the state blob: ``users`` maps a lowercased email to
``{email, name, passwordHash}`` and ``currentUser`` mirrors the signed-in
account. Passwords are hashed with werkzeug.security.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import LoginManager, UserMixin, current_user, login_user, logout_user
from werkzeug.security import check_password_hash, generate_password_hash

from audit import log_event
from extensions import limiter
from state_store import Keys, StateStore, get_store

MIN_PASSWORD_LENGTH = 8

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
login_manager = LoginManager()


class User(UserMixin):
    """Wraps a stored account for Flask-Login; the email is the id."""

    def __init__(self, email: str, name: str):
        self.id = email
        self.email = email
        self.name = name

    def to_public(self) -> dict[str, str]:
        return {"email": self.email, "name": self.name}


class AuthError(ValueError):
    """Sign-up or sign-in rejected; the message is safe to show."""


def _validate_password(password: str) -> str | None:
    """Return an error message if password is too weak, else None."""
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
    return None


class CredentialStore:
    """Account operations over the ``users``/``currentUser`` keys of a StateStore."""

    def __init__(self, store: StateStore):
        self.store = store

    def _users(self) -> dict:
        return self.store.get(Keys.USERS, {})

    def find(self, email: str) -> User | None:
        row = self._users().get((email or "").strip().lower())
        if not isinstance(row, dict):
            return None
        return User(row.get("email", ""), row.get("name", ""))

    def sign_up(self, name: str, email: str, password: str) -> User:
        key = (email or "").strip().lower()
        name = (name or "").strip()
        if not name or not key or not password:
            raise AuthError("Name, email and password are required.")
        users = self._users()
        if key in users:
            raise AuthError("Email already registered")
        error = _validate_password(password)
        if error:
            raise AuthError(error)
        record = {"name": name, "email": key, "passwordHash": generate_password_hash(password)}

        def _add(current):
            current = current or {}
            # Checked again under the store lock.
            if key in current:
                raise AuthError("Email already registered")
            return {**current, key: record}

        self.store.update(Keys.USERS, _add)
        user = User(key, name)
        self.store.set(Keys.CURRENT_USER, user.to_public())
        return user

    def sign_in(self, email: str, password: str) -> User:
        key = (email or "").strip().lower()
        row = self._users().get(key)
        stored = row.get("passwordHash", "") if isinstance(row, dict) else ""
        try:
            ok = bool(stored) and check_password_hash(stored, password or "")
        except ValueError:
            # Hash written by an older scheme werkzeug cannot parse
            ok = False
        if not ok:
            raise AuthError("Invalid credentials")
        user = User(row.get("email", key), row.get("name", ""))
        self.store.set(Keys.CURRENT_USER, user.to_public())
        return user

    def sign_out(self) -> None:
        self.store.set(Keys.CURRENT_USER, None)

    def current(self) -> dict | None:
        return self.store.get(Keys.CURRENT_USER, None)


@login_manager.user_loader
def load_user(user_id):
    return CredentialStore(get_store()).find(user_id)


@login_manager.unauthorized_handler
def _unauthorized():
    return jsonify({"error": "Sign in required"}), 401


@auth_bp.route("/signup", methods=["POST"])
@limiter.limit("10 per hour")
def signup():
    data = request.get_json(silent=True) or {}
    creds = CredentialStore(get_store())
    try:
        user = creds.sign_up(data.get("name", ""), data.get("email", ""), data.get("password", ""))
    except AuthError as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    login_user(user, remember=True)
    log_event("signup", user.email)
    return jsonify({"ok": True, "user": user.to_public()})


@auth_bp.route("/signin", methods=["POST"])
@limiter.limit("5 per 15 minutes")
def signin():
    data = request.get_json(silent=True) or {}
    creds = CredentialStore(get_store())
    email = (data.get("email") or "").strip().lower()
    try:
        user = creds.sign_in(email, data.get("password", ""))
    except AuthError as e:
        log_event("signin_failed", email)
        return jsonify({"ok": False, "error": str(e)}), 401
    login_user(user, remember=True)
    log_event("signin", user.email)
    return jsonify({"ok": True, "user": user.to_public()})


@auth_bp.route("/signout", methods=["POST"])
def signout():
    email = current_user.email if current_user.is_authenticated else None
    logout_user()
    CredentialStore(get_store()).sign_out()
    log_event("signout", email)
    return jsonify({"ok": True})


@auth_bp.route("/me")
def me():
    if current_user.is_authenticated:
        return jsonify({"user": current_user.to_public()})
    return jsonify({"user": None})
