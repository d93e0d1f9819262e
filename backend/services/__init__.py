# =============================================================================
# CropGenesis Backend
# services/__init__.py - Services Package
#
# Generative AI orchestration: Gemini client, prompts, retry with backoff
# and diagnosis field extraction.
# =============================================================================

from .errors import AIServiceError, AIConfigurationError, AIResponseError, GeminiAPIError
from .gemini_client import GeminiClient, UnconfiguredGeminiClient, create_gemini_client
from .ai_service import AIService, DiagnosisResult, get_ai_service

__all__ = [
    'AIService', 'DiagnosisResult', 'get_ai_service',
    'GeminiClient', 'UnconfiguredGeminiClient', 'create_gemini_client',
    'AIServiceError', 'AIConfigurationError', 'AIResponseError', 'GeminiAPIError'
]
