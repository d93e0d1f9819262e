# =============================================================================
# CropGenesis Backend
# utils.py - Utility Functions
#
# Common utility functions used across the application including
# response envelopes, validation error formatting and text capping.
# =============================================================================

from flask import jsonify, current_app

from constants import TRUNCATION_SUFFIX


# =============================================================================
# Response Helpers
# =============================================================================

def success_response(data=None, message=None, status_code=200):
    """
    Create a standardized success response.

    Args:
        data: Response data (dict or list)
        message: Success message
        status_code: HTTP status code (default 200)

    Returns:
        tuple: (response, status_code)
    """
    response = {'success': True}

    if message:
        response['message'] = message
    if data is not None:
        response['data'] = data

    return jsonify(response), status_code


def error_response(message, details=None, status_code=400):
    """
    Create a standardized error response.

    Args:
        message: Error message shown to the client
        details: Additional error details (only sent when provided)
        status_code: HTTP status code (default 400)

    Returns:
        tuple: (response, status_code)
    """
    response = {
        'success': False,
        'message': message
    }

    if details:
        response['details'] = details

    return jsonify(response), status_code


def validation_error_response(errors):
    """
    Create the 400 response for failed input validation.

    Args:
        errors: List of {'field': ..., 'message': ...} dicts

    Returns:
        tuple: (response, 400)
    """
    return jsonify({
        'success': False,
        'message': 'Validation failed',
        'errors': errors
    }), 400


def format_validation_errors(exc):
    """
    Flatten a pydantic ValidationError into {field, message} items.

    Custom ValueError messages raised by field validators are used as-is;
    built-in pydantic errors keep their own message.

    Args:
        exc: pydantic.ValidationError

    Returns:
        list: Error dicts in input order
    """
    errors = []
    for error in exc.errors():
        field = '.'.join(str(part) for part in error.get('loc', ())) or 'body'
        if error.get('type') == 'value_error' and 'error' in error.get('ctx', {}):
            message = str(error['ctx']['error'])
        else:
            message = error.get('msg', 'Invalid value')
        errors.append({'field': field, 'message': message})
    return errors


def debug_details(exc):
    """Return the exception text only when the app runs in debug mode."""
    return str(exc) if current_app.debug else None


# =============================================================================
# Text Helpers
# =============================================================================

def cap_text(text, max_length, suffix=TRUNCATION_SUFFIX):
    """
    Cap text to a maximum length, marking the cut with a suffix.

    Text within the limit is returned unchanged. Longer text is cut so
    that the text plus suffix is exactly max_length characters.

    Args:
        text: Text to cap (None is returned unchanged)
        max_length: Maximum number of characters
        suffix: Appended after the cut

    Returns:
        str: Capped text
    """
    if text is None or len(text) <= max_length:
        return text
    if len(suffix) >= max_length:
        return suffix[:max_length]
    return text[:max_length - len(suffix)] + suffix


def preview(text, length):
    """Short preview of a long text for list views."""
    text = text or ''
    return text if len(text) <= length else text[:length] + '...'
