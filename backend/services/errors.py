# =============================================================================
# CropGenesis Backend
# services/errors.py - AI Service Errors
#
# Exception hierarchy for failures of the generative AI dependency.
# Every subclass is reported to clients as 503 Service Unavailable.
# =============================================================================


class AIServiceError(Exception):
    """Base class for generative AI failures."""

    user_message = 'AI service is temporarily unavailable. Please try again later.'

    def __init__(self, message=None):
        super().__init__(message or self.user_message)
        self.message = message or self.user_message


class AIConfigurationError(AIServiceError):
    """No usable credential is configured for the AI API."""

    user_message = 'AI service is not properly configured. Please contact support.'


class AIResponseError(AIServiceError):
    """The AI API answered, but without any usable text."""

    user_message = 'AI service returned an empty response. Please try again.'


class GeminiAPIError(AIServiceError):
    """
    Error returned by the Gemini HTTP API.

    Attributes:
        status_code: HTTP status of the failed call, or None when the
                     request never got a response (network failure, timeout)
    """

    def __init__(self, status_code, message):
        super().__init__(message)
        self.status_code = status_code

    @property
    def user_message(self):
        if self.status_code in (401, 403):
            return 'AI service authentication failed. Please contact support.'
        if self.status_code == 429:
            return 'AI service quota exceeded. Please try again later.'
        if self.status_code is None:
            return 'Network error connecting to the AI service. Please try again.'
        return AIServiceError.user_message

    def __repr__(self):
        return f'<GeminiAPIError {self.status_code}: {self.message}>'
