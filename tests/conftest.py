"""
Shared fixtures: an app on in-memory SQLite with a temporary upload
folder and a scripted Gemini client in place of the real API.
"""

import pytest

from app import create_app
from extensions import db


SAMPLE_DIAGNOSIS = """1. Disease Identification: Early Blight (Alternaria solani)
2. Confidence Level: 85%
3. Symptoms: Dark brown spots with concentric rings on older leaves.
4. Affected Area: Leaves and lower stems
5. Severity: High
6. Cause: Fungal infection favoured by warm, humid weather.
7. Treatment Options:
   Organic: Spray neem oil every 7 days.
   Chemical: Mancozeb 2 g per litre if the spots keep spreading.
8. Prevention: Rotate crops and remove infected plant debris.
9. Timeline: 2-3 weeks
10. Cost Estimation: Rs 1,500 per acre
"""

SAMPLE_PLAN = """1. Recommended Crops
Groundnut, green gram and cotton suit loamy soil with drip irrigation.

2. Planting Schedule
Sow groundnut in the third week of June after the first rains.
"""

PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 256


class FakeGeminiClient:
    """
    Stand-in for GeminiClient.

    Returns queued responses in order (an exception in the queue is
    raised instead), then the default text. Every call is recorded.
    """

    is_configured = True

    def __init__(self, default=SAMPLE_PLAN):
        self.default = default
        self.responses = []
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def generate_content(self, parts, generation_config=None):
        self.calls.append({'parts': parts, 'generation_config': generation_config})
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return self.default

    def close(self):
        pass


@pytest.fixture
def fake_ai():
    return FakeGeminiClient()


@pytest.fixture
def upload_dir(tmp_path):
    folder = tmp_path / 'uploads'
    folder.mkdir()
    return folder


@pytest.fixture
def app(fake_ai, upload_dir):
    app = create_app('testing', ai_client=fake_ai)
    app.config['UPLOAD_FOLDER'] = str(upload_dir)
    app.extensions['ai_service'].sleep = lambda seconds: None

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def register(client):
    """Register a farmer and return bearer auth headers."""
    def _register(phone='9876543210', password='secret123', name='Ravi Kumar',
                  location='Guntur, Andhra Pradesh', language='en'):
        response = client.post('/api/auth/register', json={
            'name': name,
            'phone': phone,
            'location': location,
            'password': password,
            'language': language
        })
        assert response.status_code == 201, response.get_json()
        token = response.get_json()['data']['token']
        return {'Authorization': f'Bearer {token}'}
    return _register


@pytest.fixture
def auth_headers(register):
    return register()


@pytest.fixture
def plan_payload():
    return {
        'soilType': 'loamy',
        'landSize': 2.5,
        'irrigation': 'drip',
        'season': 'kharif',
        'preferredLanguage': 'en'
    }
