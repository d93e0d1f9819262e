import json

import httpx
import pytest

from services.errors import AIConfigurationError, AIResponseError, GeminiAPIError
from services.gemini_client import (
    GeminiClient,
    UnconfiguredGeminiClient,
    create_gemini_client,
    inline_part,
    text_part
)

BASE_URL = 'https://gemini.test/v1beta'
MODEL = 'gemini-2.5-flash-lite'


def make_client(handler):
    return GeminiClient('test-key', MODEL, BASE_URL, transport=httpx.MockTransport(handler))


def candidate(*texts):
    return {'candidates': [{'content': {'parts': [{'text': t} for t in texts]}}]}


def test_posts_prompt_and_media_to_generate_content():
    seen = {}

    def handler(request):
        seen['url'] = request.url
        seen['body'] = json.loads(request.content)
        return httpx.Response(200, json=candidate('Plant ', 'maize.'))

    client = make_client(handler)
    text = client.generate_content(
        [text_part('Suggest a crop'), inline_part('aGVsbG8=', 'image/png')],
        {'temperature': 0.6, 'maxOutputTokens': 1200}
    )

    assert text == 'Plant maize.'
    assert seen['url'].path == f'/v1beta/models/{MODEL}:generateContent'
    assert seen['url'].params['key'] == 'test-key'
    parts = seen['body']['contents'][0]['parts']
    assert parts[0] == {'text': 'Suggest a crop'}
    assert parts[1] == {'inline_data': {'mime_type': 'image/png', 'data': 'aGVsbG8='}}
    assert seen['body']['generationConfig']['maxOutputTokens'] == 1200


@pytest.mark.parametrize('status_code', [400, 401, 403, 429, 500, 503])
def test_http_errors_carry_status(status_code):
    def handler(request):
        return httpx.Response(status_code, json={'error': {'message': 'upstream says no'}})

    with pytest.raises(GeminiAPIError) as excinfo:
        make_client(handler).generate_content([text_part('hi')])

    assert excinfo.value.status_code == status_code
    assert excinfo.value.message == 'upstream says no'


def test_auth_failure_has_specific_user_message():
    error = GeminiAPIError(403, 'API key not valid')
    assert 'authentication failed' in error.user_message


def test_network_failure_has_no_status():
    def handler(request):
        raise httpx.ConnectError('connection refused', request=request)

    with pytest.raises(GeminiAPIError) as excinfo:
        make_client(handler).generate_content([text_part('hi')])

    assert excinfo.value.status_code is None


def test_empty_candidates_is_a_response_error():
    def handler(request):
        return httpx.Response(200, json={'candidates': []})

    with pytest.raises(AIResponseError):
        make_client(handler).generate_content([text_part('hi')])


def test_unconfigured_client_raises_configuration_error():
    client = UnconfiguredGeminiClient()

    assert client.is_configured is False
    with pytest.raises(AIConfigurationError):
        client.generate_content([text_part('hi')])


@pytest.mark.parametrize('api_key', ['', None, '   ', 'your_gemini_api_key_here'])
def test_missing_key_builds_unconfigured_client(api_key):
    client = create_gemini_client(api_key, MODEL, BASE_URL)
    assert isinstance(client, UnconfiguredGeminiClient)


def test_real_key_builds_configured_client():
    client = create_gemini_client('abc123', MODEL, BASE_URL)
    try:
        assert isinstance(client, GeminiClient)
        assert client.endpoint == f'{BASE_URL}/models/{MODEL}:generateContent'
    finally:
        client.close()
