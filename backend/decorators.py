# =============================================================================
# CropGenesis Backend
# decorators.py - Reusable Decorators
#
# Custom decorators for common functionality including request validation,
# database error handling and request logging.
# =============================================================================

from functools import wraps
from flask import request, current_app
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError

from extensions import db
from utils import error_response, validation_error_response, format_validation_errors

# Form fields that may legitimately repeat in multipart requests
LIST_FIELDS = ('tags',)


def _form_data():
    """Flatten request.form, keeping repeated list fields as lists."""
    data = request.form.to_dict()
    for name in LIST_FIELDS:
        values = request.form.getlist(name)
        if len(values) > 1:
            data[name] = values
    return data


def _request_data(location):
    """
    Read raw request input for validation.

    Returns:
        dict or None: Input mapping, None if a JSON body is not an object
    """
    if location == 'args':
        return request.args.to_dict()
    if location == 'form':
        return _form_data()
    if location == 'auto' and not request.is_json:
        return _form_data()

    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None


def validate_request(schema, location='json'):
    """
    Validate request input against a pydantic schema.

    Reads the JSON body, the form fields or the query string, validates it
    and passes the typed model to the decorated function as 'payload'.
    On failure the handler never runs and a 400 with itemised errors is
    returned.

    Args:
        schema: pydantic model class
        location: 'json', 'form', 'args' or 'auto' (JSON if the request
                  is JSON, form fields otherwise)

    Usage:
        @auth_bp.route('/register', methods=['POST'])
        @validate_request(RegisterRequest)
        def register(payload):
            phone = payload.phone
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            data = _request_data(location)
            if data is None:
                return validation_error_response([
                    {'field': 'body', 'message': 'Request body must be a JSON object'}
                ])

            try:
                payload = schema.model_validate(data)
            except ValidationError as e:
                errors = format_validation_errors(e)
                current_app.logger.info(
                    f"Validation failed for {request.method} {request.path}: "
                    f"{[error['field'] for error in errors]}"
                )
                return validation_error_response(errors)

            kwargs['payload'] = payload
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def handle_db_errors(f):
    """
    Handle common database errors and return appropriate responses.

    Catches IntegrityError and OperationalError and rolls back the session.
    Other exceptions propagate to the app-level error handlers.

    Usage:
        @auth_bp.route('/register', methods=['POST'])
        @handle_db_errors
        def register():
            user = User(...)
            db.session.add(user)
            db.session.commit()
            return success_response(user.to_dict(), status_code=201)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)

        except IntegrityError as e:
            db.session.rollback()
            current_app.logger.error(f"Database integrity error: {e}")

            # Parse error message for common constraints
            error_msg = str(e.orig).lower()
            if 'unique' in error_msg or 'duplicate' in error_msg:
                return error_response('A record with this value already exists', status_code=409)
            elif 'foreign key' in error_msg:
                return error_response('Referenced record does not exist', status_code=400)
            else:
                return error_response('Database constraint violation', status_code=400)

        except OperationalError as e:
            db.session.rollback()
            current_app.logger.error(f"Database operational error: {e}")
            return error_response('Database is temporarily unavailable', status_code=503)

    return decorated_function


def log_request(f):
    """
    Log incoming request details for debugging and monitoring.

    Logs method, path, remote address, and response status code.

    Usage:
        @cropplan_bp.route('/generate', methods=['POST'])
        @log_request
        def generate():
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        # Log request details
        current_app.logger.info(
            f"Request: {request.method} {request.path} "
            f"from {request.remote_addr}"
        )

        # Execute function
        response = f(*args, **kwargs)

        # Log response status
        if isinstance(response, tuple):
            status_code = response[1] if len(response) > 1 else 200
        else:
            status_code = getattr(response, 'status_code', 200)

        current_app.logger.info(
            f"Response: {status_code} for {request.method} {request.path}"
        )

        return response
    return decorated_function


def rate_limit_key_user():
    """
    Custom rate limit key function that uses user ID if authenticated.

    Falls back to IP address for unauthenticated requests or requests
    carrying an unusable token.

    Usage:
        @limiter.limit("10 per minute", key_func=rate_limit_key_user)
        def my_endpoint():
            ...
    """
    try:
        verify_jwt_in_request(optional=True)
        user_id = get_jwt_identity()
        if user_id:
            return f"user:{user_id}"
    except (JWTExtendedException, PyJWTError):
        pass

    return request.remote_addr
