# =============================================================================
# CropGenesis Backend
# services/gemini_client.py - Gemini REST Client
#
# Thin HTTP client for the Gemini generateContent endpoint. Two variants:
# GeminiClient when an API key is configured, UnconfiguredGeminiClient when
# it is not. The app factory builds one of them and injects it into AIService.
# =============================================================================

import logging
from typing import Any, Dict, List, Optional

import httpx

from services.errors import AIConfigurationError, AIResponseError, GeminiAPIError

logger = logging.getLogger(__name__)

# Placeholder shipped in example env files
PLACEHOLDER_API_KEY = 'your_gemini_api_key_here'


def text_part(text: str) -> Dict[str, Any]:
    return {'text': text}


def inline_part(data_base64: str, mime_type: str) -> Dict[str, Any]:
    return {'inline_data': {'mime_type': mime_type, 'data': data_base64}}


class GeminiClient:
    """
    Gemini client backed by an httpx connection pool.

    Each call posts one user turn made of text and inline media parts and
    returns the concatenated text of the first candidate.
    """

    is_configured = True

    def __init__(self, api_key: str, model: str, base_url: str,
                 timeout: float = 60.0, transport: Optional[httpx.BaseTransport] = None):
        """
        Args:
            api_key: Gemini API key
            model: Model name, e.g. gemini-2.5-flash-lite
            base_url: API root, e.g. https://generativelanguage.googleapis.com/v1beta
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip('/')
        self._http = httpx.Client(timeout=timeout, transport=transport)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def generate_content(self, parts: List[Dict[str, Any]],
                         generation_config: Optional[Dict[str, Any]] = None) -> str:
        """
        Call generateContent once (no retries here).

        Args:
            parts: Content parts (see text_part / inline_part)
            generation_config: temperature, maxOutputTokens, topP, topK

        Returns:
            str: Generated text

        Raises:
            GeminiAPIError: HTTP error status or network failure
            AIResponseError: No text in the response
        """
        payload = {'contents': [{'role': 'user', 'parts': parts}]}
        if generation_config:
            payload['generationConfig'] = generation_config

        try:
            response = self._http.post(
                self.endpoint,
                params={'key': self.api_key},
                json=payload,
                headers={'Content-Type': 'application/json'}
            )
        except httpx.TimeoutException as e:
            raise GeminiAPIError(None, f'Timed out calling Gemini API: {e}') from e
        except httpx.TransportError as e:
            raise GeminiAPIError(None, f'Network error connecting to Gemini API: {e}') from e

        logger.debug(f"Gemini response status: {response.status_code}")

        if response.status_code >= 400:
            raise GeminiAPIError(response.status_code, self._error_message(response))

        return self._extract_text(response)

    def close(self):
        self._http.close()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            error = response.json().get('error', {})
            message = error.get('message')
        except (ValueError, AttributeError):
            message = None
        return message or f'Gemini API returned HTTP {response.status_code}'

    @staticmethod
    def _extract_text(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError as e:
            raise AIResponseError('Gemini API returned invalid JSON') from e

        candidates = data.get('candidates') or []
        if not candidates:
            raise AIResponseError('Gemini API returned no candidates')

        parts = (candidates[0].get('content') or {}).get('parts') or []
        text = ''.join(part.get('text', '') for part in parts if isinstance(part, dict))
        if not text.strip():
            raise AIResponseError('Gemini API returned an empty response')
        return text

    def __repr__(self):
        return f'<GeminiClient {self.model}>'


class UnconfiguredGeminiClient:
    """Stand-in used when no API key is set; every call fails explicitly."""

    is_configured = False
    model = None

    def generate_content(self, parts, generation_config=None):
        raise AIConfigurationError('Gemini API key is not configured')

    def close(self):
        pass

    def __repr__(self):
        return '<UnconfiguredGeminiClient>'


def create_gemini_client(api_key, model, base_url, timeout=60.0, transport=None):
    """
    Build the client variant matching the configuration.

    Args:
        api_key: Configured key (empty or placeholder means unconfigured)
        model: Model name
        base_url: API root URL
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport

    Returns:
        GeminiClient or UnconfiguredGeminiClient
    """
    api_key = (api_key or '').strip()
    if not api_key or api_key == PLACEHOLDER_API_KEY:
        logger.warning("GEMINI_API_KEY not configured; AI features will return 503")
        return UnconfiguredGeminiClient()

    logger.info(f"Gemini client configured for model {model}")
    return GeminiClient(api_key, model, base_url, timeout=timeout, transport=transport)
