import io

import pytest
from werkzeug.datastructures import FileStorage

from models import Diagnosis, DiagnosisFollowUp
from services.errors import GeminiAPIError

from conftest import PNG_BYTES, SAMPLE_DIAGNOSIS


def upload(client, headers, content=PNG_BYTES, filename='leaf.png', mimetype='image/png', field='file'):
    return client.post(
        '/api/diagnosis/upload',
        headers=headers,
        data={field: (io.BytesIO(content), filename, mimetype)},
        content_type='multipart/form-data'
    )


def test_upload_diagnoses_image(client, auth_headers, fake_ai, upload_dir):
    fake_ai.queue(SAMPLE_DIAGNOSIS)

    response = upload(client, auth_headers)

    assert response.status_code == 201
    data = response.get_json()['data']
    diagnosis = data['diagnosis']
    assert diagnosis['fileType'] == 'image'
    assert diagnosis['imageURL'].startswith('/uploads/file-')
    assert diagnosis['imageURL'].endswith('.png')
    assert diagnosis['videoURL'] is None
    assert diagnosis['fileName'] == 'leaf.png'
    assert diagnosis['fileSize'] == len(PNG_BYTES)
    assert diagnosis['diseaseName'] == 'Early Blight (Alternaria solani)'
    assert diagnosis['confidence'] == 85
    assert diagnosis['severity'] == 'high'
    assert diagnosis['affectedArea'] == 'leaves'
    assert diagnosis['estimatedCost'] == 1500.0
    assert diagnosis['estimatedTime'] == '2-3 weeks'
    assert diagnosis['remedy'].startswith('7. Treatment Options:')
    assert data['audioURL'] is None

    parts = fake_ai.calls[0]['parts']
    assert parts[1]['inline_data']['mime_type'] == 'image/png'
    assert fake_ai.calls[0]['generation_config']['temperature'] == 0.3

    stored = diagnosis['imageURL'].rsplit('/', 1)[1]
    assert (upload_dir / stored).read_bytes() == PNG_BYTES


def test_uploaded_file_is_served(client, auth_headers, fake_ai):
    fake_ai.queue(SAMPLE_DIAGNOSIS)
    image_url = upload(client, auth_headers).get_json()['data']['diagnosis']['imageURL']

    response = client.get(image_url)

    assert response.status_code == 200
    assert response.data == PNG_BYTES


def test_video_upload_sets_video_url(client, auth_headers, fake_ai):
    fake_ai.queue(SAMPLE_DIAGNOSIS)

    response = upload(client, auth_headers, content=b'\x00\x00\x00\x18ftypmp42' * 8,
                      filename='field.mp4', mimetype='video/mp4')

    assert response.status_code == 201
    diagnosis = response.get_json()['data']['diagnosis']
    assert diagnosis['fileType'] == 'video'
    assert diagnosis['imageURL'] is None
    assert diagnosis['videoURL'].endswith('.mp4')
    assert 'video' in fake_ai.calls[0]['parts'][0]['text']


def test_disallowed_type_is_rejected_before_writing(client, auth_headers, fake_ai, upload_dir):
    response = upload(client, auth_headers, content=b'plain text', filename='notes.txt',
                      mimetype='text/plain')

    assert response.status_code == 400
    assert 'Invalid file type' in response.get_json()['message']
    assert list(upload_dir.iterdir()) == []
    assert fake_ai.calls == []
    assert Diagnosis.query.count() == 0


def test_oversized_file_is_removed(app, client, auth_headers, fake_ai, upload_dir):
    app.config['MAX_UPLOAD_SIZE'] = 1024

    response = upload(client, auth_headers, content=b'\x89PNG' + b'\x00' * 2044)

    assert response.status_code == 400
    assert 'File too large' in response.get_json()['message']
    assert list(upload_dir.iterdir()) == []
    assert fake_ai.calls == []


def test_missing_file(client, auth_headers, fake_ai):
    response = client.post('/api/diagnosis/upload', headers=auth_headers, data={},
                           content_type='multipart/form-data')

    assert response.status_code == 400
    assert response.get_json()['message'] == 'No file uploaded'
    assert fake_ai.calls == []


def test_wrong_field_name(client, auth_headers, upload_dir):
    response = upload(client, auth_headers, field='image')

    assert response.status_code == 400
    assert list(upload_dir.iterdir()) == []


def test_ai_failure_removes_upload(client, auth_headers, fake_ai, upload_dir):
    fake_ai.queue(GeminiAPIError(400, 'bad request'))

    response = upload(client, auth_headers)

    assert response.status_code == 503
    assert list(upload_dir.iterdir()) == []
    assert Diagnosis.query.count() == 0


def test_unstructured_answer_uses_defaults(client, auth_headers, fake_ai):
    fake_ai.queue('The leaves look healthy. Keep the current watering schedule.')

    response = upload(client, auth_headers)

    assert response.status_code == 201
    diagnosis = response.get_json()['data']['diagnosis']
    assert diagnosis['diseaseName'] == 'Unknown'
    assert diagnosis['severity'] == 'medium'
    assert diagnosis['affectedArea'] == 'unknown'
    assert diagnosis['confidence'] is None
    assert diagnosis['remedy'] == diagnosis['diagnosisText']


def test_diagnosis_prompt_uses_profile_language(client, register, fake_ai):
    headers = register(phone='9000000020', language='ta')
    fake_ai.queue(SAMPLE_DIAGNOSIS)

    upload(client, headers)

    assert 'Tamil' in fake_ai.calls[0]['parts'][0]['text']


def test_delete_removes_record_and_file(client, auth_headers, fake_ai, upload_dir):
    fake_ai.queue(SAMPLE_DIAGNOSIS)
    diagnosis_id = upload(client, auth_headers).get_json()['data']['diagnosis']['id']
    assert len(list(upload_dir.iterdir())) == 1

    response = client.delete(f'/api/diagnosis/{diagnosis_id}', headers=auth_headers)

    assert response.status_code == 200
    assert Diagnosis.query.count() == 0
    assert list(upload_dir.iterdir()) == []
    assert client.get(f'/api/diagnosis/{diagnosis_id}', headers=auth_headers).status_code == 404


def test_other_users_cannot_see_or_delete(client, register, fake_ai, upload_dir):
    owner = register(phone='9000000021')
    other = register(phone='9000000022')
    fake_ai.queue(SAMPLE_DIAGNOSIS)
    diagnosis_id = upload(client, owner).get_json()['data']['diagnosis']['id']

    assert client.get(f'/api/diagnosis/{diagnosis_id}', headers=other).status_code == 404
    assert client.delete(f'/api/diagnosis/{diagnosis_id}', headers=other).status_code == 404
    assert Diagnosis.query.count() == 1
    assert len(list(upload_dir.iterdir())) == 1


def test_follow_up(client, auth_headers, fake_ai):
    fake_ai.queue(SAMPLE_DIAGNOSIS, 'Spray in the early morning or late evening.')
    diagnosis_id = upload(client, auth_headers).get_json()['data']['diagnosis']['id']

    response = client.post('/api/diagnosis/followup', headers=auth_headers, json={
        'diagnosisId': diagnosis_id,
        'question': 'When should I spray neem oil?'
    })

    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['answer'] == 'Spray in the early morning or late evening.'
    assert data['language'] == 'en'
    assert data['followUpCount'] == 1
    assert 'disease diagnosis' in fake_ai.calls[-1]['parts'][0]['text']


def test_follow_up_on_missing_diagnosis(client, auth_headers, fake_ai):
    response = client.post('/api/diagnosis/followup', headers=auth_headers, json={
        'diagnosisId': 424242,
        'question': 'Is it spreading?'
    })

    assert response.status_code == 404
    assert DiagnosisFollowUp.query.count() == 0
    assert fake_ai.calls == []


def test_list_stats_and_diseases(client, auth_headers, fake_ai):
    fake_ai.queue(
        SAMPLE_DIAGNOSIS,
        SAMPLE_DIAGNOSIS.replace('85%', '75%'),
        'Disease: Leaf Rust\nConfidence: 60%\nSeverity: Critical'
    )
    for _ in range(3):
        assert upload(client, auth_headers).status_code == 201

    listing = client.get('/api/diagnosis?limit=2', headers=auth_headers).get_json()['data']
    assert len(listing['diagnoses']) == 2
    assert listing['diagnoses'][0]['diseaseName'] == 'Leaf Rust'
    assert listing['pagination']['totalCount'] == 3
    assert listing['pagination']['hasNextPage'] is True

    stats = client.get('/api/diagnosis/stats/summary', headers=auth_headers).get_json()['data']['stats']
    assert stats['totalDiagnoses'] == 3
    assert stats['highSeverity'] == 2
    assert stats['criticalSeverity'] == 1
    assert stats['avgConfidence'] == 73.33
    assert stats['bySeverity'] == {'high': 2, 'critical': 1}

    diseases = client.get('/api/diagnosis/diseases/list', headers=auth_headers).get_json()['data']['diseases']
    assert [(d['diseaseName'], d['count']) for d in diseases] == [
        ('Early Blight (Alternaria solani)', 2),
        ('Leaf Rust', 1)
    ]
    assert diseases[1]['severity'] == 'critical'


def test_empty_stats(client, auth_headers):
    stats = client.get('/api/diagnosis/stats/summary', headers=auth_headers).get_json()['data']['stats']

    assert stats == {
        'totalDiagnoses': 0,
        'highSeverity': 0,
        'criticalSeverity': 0,
        'avgConfidence': 0,
        'bySeverity': {}
    }


def test_failed_write_leaves_no_partial_file(client, auth_headers, fake_ai, upload_dir, monkeypatch):
    def save_partially(self, dst, buffer_size=16384):
        with open(dst, 'wb') as f:
            f.write(b'partial')
        raise OSError(28, 'No space left on device')

    monkeypatch.setattr(FileStorage, 'save', save_partially)

    with pytest.raises(OSError):
        upload(client, auth_headers)

    assert list(upload_dir.iterdir()) == []
    assert fake_ai.calls == []
    assert Diagnosis.query.count() == 0


def test_request_over_content_limit_is_a_400(app, client, auth_headers, fake_ai, upload_dir):
    app.config['MAX_CONTENT_LENGTH'] = 512

    response = upload(client, auth_headers, content=PNG_BYTES * 8)

    assert response.status_code == 400
    body = response.get_json()
    assert body['success'] is False
    assert body['message'].startswith('File too large')
    assert list(upload_dir.iterdir()) == []
    assert fake_ai.calls == []


def test_disease_list_reports_latest_severity(client, auth_headers, fake_ai):
    fake_ai.queue(SAMPLE_DIAGNOSIS, SAMPLE_DIAGNOSIS.replace('Severity: High', 'Severity: Low'))
    for _ in range(2):
        assert upload(client, auth_headers).status_code == 201

    diseases = client.get('/api/diagnosis/diseases/list', headers=auth_headers).get_json()['data']['diseases']

    assert len(diseases) == 1
    assert diseases[0]['count'] == 2
    assert diseases[0]['severity'] == 'low'
    assert diseases[0]['lastOccurrence'] is not None
