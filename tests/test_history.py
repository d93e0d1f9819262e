import io

from models import CropPlan, CropPlanFollowUp, Diagnosis

from conftest import PNG_BYTES, SAMPLE_DIAGNOSIS


def make_plan(client, headers, plan_payload, season='kharif'):
    payload = dict(plan_payload, season=season)
    response = client.post('/api/cropplan/generate', headers=headers, json=payload)
    assert response.status_code == 201
    return response.get_json()['data']['plan']['id']


def make_diagnosis(client, headers, fake_ai):
    fake_ai.queue(SAMPLE_DIAGNOSIS)
    response = client.post(
        '/api/diagnosis/upload',
        headers=headers,
        data={'file': (io.BytesIO(PNG_BYTES), 'leaf.png', 'image/png')},
        content_type='multipart/form-data'
    )
    assert response.status_code == 201
    return response.get_json()['data']['diagnosis']['id']


def test_history_interleaves_newest_first(client, auth_headers, fake_ai, plan_payload):
    first_plan = make_plan(client, auth_headers, plan_payload, season='rabi')
    diagnosis_id = make_diagnosis(client, auth_headers, fake_ai)
    second_plan = make_plan(client, auth_headers, plan_payload, season='zaid')

    response = client.get('/api/history/get', headers=auth_headers)

    assert response.status_code == 200
    data = response.get_json()['data']
    assert [(item['type'], item['id']) for item in data['history']] == [
        ('crop-plan', second_plan),
        ('diagnosis', diagnosis_id),
        ('crop-plan', first_plan)
    ]
    assert data['history'][0]['title'] == 'Crop Plan - zaid Season'
    assert data['history'][1]['title'] == 'Early Blight (Alternaria solani)'
    assert data['history'][0]['data']['inputs']['season'] == 'zaid'
    assert data['pagination']['totalCount'] == 3


def test_history_pages_across_both_kinds(client, auth_headers, fake_ai, plan_payload):
    make_plan(client, auth_headers, plan_payload)
    make_diagnosis(client, auth_headers, fake_ai)
    make_plan(client, auth_headers, plan_payload)

    page_one = client.get('/api/history/get?page=1&limit=2', headers=auth_headers).get_json()['data']
    page_two = client.get('/api/history/get?page=2&limit=2', headers=auth_headers).get_json()['data']

    assert len(page_one['history']) == 2
    assert len(page_two['history']) == 1
    assert page_two['history'][0]['type'] == 'crop-plan'
    assert page_one['pagination']['hasNextPage'] is True
    assert page_two['pagination']['hasPrevPage'] is True


def test_history_type_filter(client, auth_headers, fake_ai, plan_payload):
    make_plan(client, auth_headers, plan_payload)
    make_diagnosis(client, auth_headers, fake_ai)

    plans = client.get('/api/history/get?type=crop-plans', headers=auth_headers).get_json()['data']
    diagnoses = client.get('/api/history/get?type=diagnoses', headers=auth_headers).get_json()['data']

    assert [item['type'] for item in plans['history']] == ['crop-plan']
    assert [item['type'] for item in diagnoses['history']] == ['diagnosis']
    assert client.get('/api/history/get?type=weather', headers=auth_headers).status_code == 400


def test_history_preview_is_short(client, auth_headers, fake_ai, plan_payload):
    fake_ai.queue('B' * 600)
    make_plan(client, auth_headers, plan_payload)

    item = client.get('/api/history/get', headers=auth_headers).get_json()['data']['history'][0]

    assert item['description'] == 'B' * 200 + '...'


def test_history_is_scoped_to_user(client, register, fake_ai, plan_payload):
    owner = register(phone='9000000030')
    other = register(phone='9000000031')
    make_plan(client, owner, plan_payload)

    data = client.get('/api/history/get', headers=other).get_json()['data']

    assert data['history'] == []
    assert data['pagination']['totalCount'] == 0


def test_delete_single_items(client, auth_headers, fake_ai, plan_payload, upload_dir):
    plan_id = make_plan(client, auth_headers, plan_payload)
    client.post('/api/cropplan/followup', headers=auth_headers, json={
        'planId': plan_id, 'question': 'Which fertiliser first?'
    })
    diagnosis_id = make_diagnosis(client, auth_headers, fake_ai)

    assert client.delete(f'/api/history/delete/crop-plan/{plan_id}', headers=auth_headers).status_code == 200
    assert CropPlan.query.count() == 0
    assert CropPlanFollowUp.query.count() == 0

    assert client.delete(f'/api/history/delete/diagnosis/{diagnosis_id}', headers=auth_headers).status_code == 200
    assert Diagnosis.query.count() == 0
    assert list(upload_dir.iterdir()) == []

    response = client.delete(f'/api/history/delete/diagnosis/{diagnosis_id}', headers=auth_headers)
    assert response.status_code == 404


def test_delete_rejects_unknown_type(client, auth_headers):
    response = client.delete('/api/history/delete/weather/1', headers=auth_headers)

    assert response.status_code == 400
    assert response.get_json()['success'] is False


def test_clear_only_diagnoses(client, auth_headers, fake_ai, plan_payload, upload_dir):
    make_plan(client, auth_headers, plan_payload)
    make_diagnosis(client, auth_headers, fake_ai)

    response = client.delete('/api/history/clear', headers=auth_headers, json={'type': 'diagnoses'})

    assert response.status_code == 200
    assert response.get_json()['data'] == {'deletedPlans': 0, 'deletedDiagnoses': 1}
    assert CropPlan.query.count() == 1
    assert Diagnosis.query.count() == 0
    assert list(upload_dir.iterdir()) == []


def test_clear_everything(client, register, fake_ai, plan_payload, upload_dir):
    owner = register(phone='9000000032')
    other = register(phone='9000000033')
    make_plan(client, owner, plan_payload)
    make_plan(client, owner, plan_payload)
    make_diagnosis(client, owner, fake_ai)
    make_plan(client, other, plan_payload)

    response = client.delete('/api/history/clear', headers=owner)

    assert response.status_code == 200
    assert response.get_json()['data'] == {'deletedPlans': 2, 'deletedDiagnoses': 1}
    assert CropPlan.query.count() == 1
    assert list(upload_dir.iterdir()) == []


def test_clear_rejects_unknown_type(client, auth_headers):
    response = client.delete('/api/history/clear', headers=auth_headers, json={'type': 'weather'})
    assert response.status_code == 400


def test_stats(client, auth_headers, fake_ai, plan_payload):
    empty = client.get('/api/history/stats', headers=auth_headers).get_json()['data']
    assert empty['total'] == {'items': 0, 'lastActivity': None}

    make_plan(client, auth_headers, plan_payload)
    diagnosis_id = make_diagnosis(client, auth_headers, fake_ai)

    data = client.get('/api/history/stats', headers=auth_headers).get_json()['data']

    assert data['cropPlans']['totalPlans'] == 1
    assert data['diagnoses']['totalDiagnoses'] == 1
    assert data['total']['items'] == 2
    diagnosis = client.get(f'/api/diagnosis/{diagnosis_id}', headers=auth_headers).get_json()['data']['diagnosis']
    assert data['total']['lastActivity'] == diagnosis['createdAt']
