"""Authentication and role checks for the contacts book."""
import logging
import re
from datetime import timedelta
from functools import wraps

from flask import jsonify
from flask_jwt_extended import create_access_token, get_jwt_identity, verify_jwt_in_request

import config
from models import db, User, Role, ROLE_NAMES

logger = logging.getLogger(__name__)

DEFAULT_ROLE = 'ReadOnly'
MIN_PASSWORD_LENGTH = 8


def check_password_policy(password):
    """Return an error message, or None if the password is acceptable."""
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if not re.search(r'\d', password):
        return "Password must contain a digit"
    if not re.search(r'[a-z]', password):
        return "Password must contain a lowercase letter"
    if not re.search(r'[A-Z]', password):
        return "Password must contain an uppercase letter"
    if not re.search(r'[^A-Za-z0-9]', password):
        return "Password must contain a non-alphanumeric character"
    return None


def _get_roles(names):
    return Role.query.filter(Role.name.in_(names)).all()


def register_user(email, password, first_name=None, last_name=None):
    """Register a new user with the default role.

    Returns:
        tuple: (user_dict, error_message)
    """
    if not isinstance(email, str) or '@' not in email.strip():
        return None, "Invalid email address"
    email = email.strip()
    if not isinstance(password, str):
        return None, "Password must be a string"
    error = check_password_policy(password)
    if error:
        return None, error
    if User.query.filter_by(email=email).first():
        return None, "Email already exists"

    if not all(isinstance(v, (str, type(None))) for v in (first_name, last_name)):
        return None, "Names must be strings"

    user = User(email=email, first_name=first_name, last_name=last_name)
    user.set_password(password)
    user.roles = _get_roles([DEFAULT_ROLE])

    try:
        db.session.add(user)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.exception('Failed to register %s', email)
        return None, f"Error creating user: {str(e)}"
    logger.info('Registered user %s', email)
    return user.to_dict(), None


def login_user(email, password):
    """Authenticate a user and issue an access token.

    Returns:
        tuple: (token_dict, error_message)
    """
    if not isinstance(email, str) or not isinstance(password, str):
        return None, "Invalid email or password"
    user = User.query.filter_by(email=email.strip()).first()
    if not user or not password or not user.check_password(password):
        logger.info('Failed login for %s', email)
        return None, "Invalid email or password"

    # identity must be a string
    access_token = create_access_token(
        identity=str(user.id),
        additional_claims={'roles': user.role_names},
        expires_delta=timedelta(hours=config.JWT_ACCESS_TOKEN_HOURS),
    )
    logger.info('User %s logged in', user.email)
    return {'access_token': access_token, 'user': user.to_dict()}, None


def get_current_user():
    """Get the current authenticated user from the JWT, or None."""
    user_id = get_jwt_identity()
    if user_id is None:
        return None
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


def roles_required(*roles):
    """Require a valid JWT for an existing user; when roles are given, require one of them.

    Roles are read from the database, so a role change applies to tokens
    already issued.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            verify_jwt_in_request()
            user = get_current_user()
            if user is None:
                return jsonify({'error': 'User not found'}), 401
            if roles and not set(roles) & set(user.role_names):
                return jsonify({'error': 'Forbidden', 'message': f"Requires one of roles: {', '.join(roles)}"}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def _commit():
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def set_user_roles(user, names):
    """Replace a user's roles. Returns an error message or None."""
    if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
        return "roles must be a list of strings"
    unknown = [n for n in names if n not in ROLE_NAMES]
    if unknown:
        return f"Unknown roles: {', '.join(unknown)}"
    user.roles = _get_roles(names)
    _commit()
    logger.info('Roles of %s set to %s', user.email, user.role_names)
    return None


def seed_roles():
    """Create the built-in roles if they are missing."""
    for name in ROLE_NAMES:
        if not Role.query.filter_by(name=name).first():
            db.session.add(Role(name=name))
    _commit()


def seed_admin(admin_email, admin_password):
    """Create the default admin if it is missing."""
    if User.query.filter_by(email=admin_email).first():
        return
    admin = User(email=admin_email, first_name='Admin', last_name='User')
    admin.set_password(admin_password)
    admin.roles = _get_roles(['Admin'])
    db.session.add(admin)
    _commit()
    logger.info('Seeded admin user %s', admin_email)
