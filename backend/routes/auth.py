# =============================================================================
# CropGenesis Backend
# routes/auth.py - Authentication Routes
#
# Handles farmer registration, login, logout, and profile management.
# Farmers sign in with their 10-digit phone number. Uses JWT tokens for
# stateless authentication.
# =============================================================================

from flask import Blueprint, current_app
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    jwt_required,
    get_jwt_identity,
    current_user
)

from extensions import db, limiter
from models import User, utcnow
from schemas import (
    RegisterRequest,
    LoginRequest,
    UpdateProfileRequest,
    ChangePasswordRequest
)
from utils import success_response, error_response
from decorators import validate_request, handle_db_errors

# Create blueprint
auth_bp = Blueprint('auth', __name__)


def auth_payload(user):
    """Token pair plus user, as returned by register and login."""
    return {
        'token': create_access_token(identity=str(user.id)),
        'refreshToken': create_refresh_token(identity=str(user.id)),
        'user': user.to_dict()
    }


# =============================================================================
# User Registration
# =============================================================================

@auth_bp.route('/register', methods=['POST'])
@limiter.limit("5 per minute")
@validate_request(RegisterRequest)
@handle_db_errors
def register(payload):
    """
    Register a new farmer account.

    Request Body:
        name (str): Full name (2-100 chars)
        phone (str): 10-digit phone number
        location (str): Village / district (2-200 chars)
        password (str): Password (min 6 chars)
        language (str): Preferred language code (optional, default en)

    Returns:
        201: User registered successfully with token
        400: Validation error
        409: Phone number already registered
    """
    # Check if phone already exists
    if User.query.filter_by(phone=payload.phone).first():
        return error_response('User with this phone number already exists', status_code=409)

    user = User(
        name=payload.name,
        phone=payload.phone,
        location=payload.location,
        language=payload.language
    )
    user.set_password(payload.password)

    db.session.add(user)
    db.session.commit()

    current_app.logger.info(f"New user registered: {user.phone}")

    return success_response(
        data=auth_payload(user),
        message='User registered successfully',
        status_code=201
    )


# =============================================================================
# User Login
# =============================================================================

@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
@validate_request(LoginRequest)
@handle_db_errors
def login(payload):
    """
    Authenticate a farmer and return a JWT.

    Request Body:
        phone (str): 10-digit phone number
        password (str): Password

    Returns:
        200: Login successful with token
        400: Validation error
        401: Invalid credentials
    """
    user = User.query.filter_by(phone=payload.phone).first()

    if not user or not user.check_password(payload.password):
        return error_response('Invalid phone number or password', status_code=401)

    # Update last login
    user.last_login = utcnow()
    db.session.commit()

    current_app.logger.info(f"User logged in: {user.phone}")

    return success_response(data=auth_payload(user), message='Login successful')


# =============================================================================
# Token Refresh
# =============================================================================

@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    """
    Refresh access token using refresh token.

    Headers:
        Authorization: Bearer <refresh_token>

    Returns:
        200: New access token
        401: Invalid or expired refresh token, or unknown user
    """
    access_token = create_access_token(identity=get_jwt_identity())
    return success_response(data={'token': access_token})


# =============================================================================
# Profile
# =============================================================================

@auth_bp.route('/profile', methods=['GET'])
@jwt_required()
def get_profile():
    """
    Get the current farmer's profile.

    Returns:
        200: User profile data
        401: Not authenticated
    """
    return success_response(data={'user': current_user.to_dict()})


@auth_bp.route('/profile', methods=['PUT'])
@jwt_required()
@validate_request(UpdateProfileRequest)
@handle_db_errors
def update_profile(payload):
    """
    Update name, location and/or language.

    Request Body:
        name (str): New name (optional)
        location (str): New location (optional)
        language (str): New language code (optional)

    Returns:
        200: Profile updated successfully
        400: Validation error
    """
    updates = payload.model_dump(exclude_none=True)
    for field, value in updates.items():
        setattr(current_user, field, value)

    db.session.commit()

    current_app.logger.info(f"Profile updated for user {current_user.id}: {sorted(updates)}")

    return success_response(
        data={'user': current_user.to_dict()},
        message='Profile updated successfully'
    )


# =============================================================================
# Change Password
# =============================================================================

@auth_bp.route('/change-password', methods=['PUT', 'POST'])
@jwt_required()
@limiter.limit("5 per minute")
@validate_request(ChangePasswordRequest)
@handle_db_errors
def change_password(payload):
    """
    Change the current farmer's password.

    Request Body:
        currentPassword (str): Current password
        newPassword (str): New password (min 6 chars)

    Returns:
        200: Password changed successfully
        400: Validation error or wrong current password
    """
    if not current_user.check_password(payload.current_password):
        return error_response('Current password is incorrect', status_code=400)

    current_user.set_password(payload.new_password)
    db.session.commit()

    current_app.logger.info(f"Password changed for user {current_user.id}")

    return success_response(message='Password changed successfully')


# =============================================================================
# Logout
# =============================================================================

@auth_bp.route('/logout', methods=['POST'])
@jwt_required()
def logout():
    """
    Logout (client should discard its token).

    JWT tokens are stateless; this endpoint only acknowledges the logout.

    Returns:
        200: Logout successful
    """
    return success_response(message='Logged out successfully')
