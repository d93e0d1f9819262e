from app import create_app
from extensions import db


def test_health(client):
    response = client.get('/health')

    assert response.status_code == 200
    body = response.get_json()
    assert body['status'] == 'healthy'
    assert body['database'] == 'connected'
    assert body['ai_configured'] is True


def test_index(client):
    body = client.get('/').get_json()
    assert body['name'] == 'CropGenesis API'


def test_unknown_route_is_json_404(client):
    response = client.get('/api/nothing-here')

    assert response.status_code == 404
    assert response.get_json() == {'success': False, 'message': 'API endpoint not found'}


def test_missing_api_key_means_unconfigured(tmp_path):
    app = create_app('testing')
    app.config['UPLOAD_FOLDER'] = str(tmp_path)

    with app.app_context():
        db.create_all()
        client = app.test_client()
        client.post('/api/auth/register', json={
            'name': 'Meena',
            'phone': '9000000040',
            'location': 'Indore',
            'password': 'secret123'
        })
        token = client.post('/api/auth/login', json={
            'phone': '9000000040', 'password': 'secret123'
        }).get_json()['data']['token']
        headers = {'Authorization': f'Bearer {token}'}

        status = client.get('/api/cropplan/status', headers=headers).get_json()['data']
        assert status == {
            'hasApiKey': False,
            'status': 'not_configured',
            'message': 'Gemini API key is not configured'
        }

        response = client.post('/api/cropplan/generate', headers=headers, json={
            'soilType': 'sandy', 'landSize': 1, 'irrigation': 'rainfed', 'season': 'rabi'
        })
        assert response.status_code == 503
        assert client.get('/health').get_json()['ai_configured'] is False

        db.session.remove()
        db.drop_all()


def test_non_object_json_body(client, auth_headers):
    response = client.post('/api/cropplan/followup', headers=auth_headers, json=[1, 2, 3])

    assert response.status_code == 400
    assert response.get_json()['errors'][0]['field'] == 'body'
