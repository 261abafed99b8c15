# routes/auth_routes.py

import base64
import hmac
import logging
import time

from flask import jsonify, request

from ..validator import clean_and_trim_string, is_true
from .common import get_client

logger = logging.getLogger(__name__)

EXECUTIVE_TITLES = (
    "ceo", "chief executive", "chief operating", "coo", "general manager", "president",
)
MANAGER_TITLES = ("manager", "head", "supervisor", "officer")
SALES_TITLES = ("sales", "business development", "marketing")


def is_executive(position, is_admin):
    if is_admin:
        return True
    title = (position or "").lower()
    return any(word in title for word in EXECUTIVE_TITLES)


def role_for(position, is_admin=False):
    """
    Dashboard role of a user, from the admin flag and the job title.

    >>> role_for("Area Sales Supervisor")
    'manager'
    """
    if is_executive(position, is_admin):
        return "executive"
    title = (position or "").lower()
    if any(word in title for word in MANAGER_TITLES):
        return "manager"
    if any(word in title for word in SALES_TITLES):
        return "salesman"
    return "encoder"


def _find_user(users, username):
    wanted = username.lower()
    for user in users:
        if not isinstance(user, dict):
            continue
        email = clean_and_trim_string(user.get("user_email")).lower()
        first_name = clean_and_trim_string(user.get("user_fname")).lower()
        if wanted in (email, first_name):
            return user
    return None


def _token(user):
    stamp = int(time.time() * 1000)
    raw = f"{user.get('user_id')}:{user.get('user_email')}:{stamp}"
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


async def login():
    """
    Credential check against the ``user`` collection.

    Not real authentication: the token is an opaque stamp the UI keeps
    around, nothing verifies it later.
    """
    body = request.get_json(silent=True) or {}
    username = clean_and_trim_string(body.get("username"))
    password = body.get("password") or ""
    if not username or not password:
        return jsonify({"error": "Username and password are required"}), 400

    client = get_client()
    errors = []
    users = await client.fetch("user", errors=errors, paginate=False)
    if errors:
        logger.error("❌ login: user fetch failed: %s", errors[0].message)
        return jsonify({"error": "Failed to connect to authentication service"}), 500
    if not users:
        return jsonify({"error": "No users available"}), 500

    user = _find_user(users, username)
    if user is None:
        return jsonify({"error": "Invalid credentials"}), 401
    if is_true(user.get("is_deleted")):
        return jsonify({"error": "Account has been deactivated"}), 401

    stored = str(user.get("user_password") or "")
    if not stored or not hmac.compare_digest(stored.encode("utf-8"), str(password).encode("utf-8")):
        return jsonify({"error": "Invalid credentials"}), 401

    position = clean_and_trim_string(user.get("user_position"))
    is_admin = is_true(user.get("isAdmin"))
    first_name = clean_and_trim_string(user.get("user_fname"))
    last_name = clean_and_trim_string(user.get("user_lname"))

    logger.info("🔑 login ok: %s (%s)", user.get("user_email"), position)
    return jsonify({
        "success": True,
        "token": _token(user),
        "user": {
            "id": user.get("user_id"),
            "username": first_name or user.get("user_email"),
            "email": user.get("user_email") or "",
            "role": role_for(position, is_admin),
            "name": f"{first_name} {last_name}".strip(),
            "position": position,
            "isAdmin": is_admin,
            "isCOO": is_executive(position, is_admin),
        },
    })
