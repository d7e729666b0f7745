import io
from datetime import datetime, timezone

from PIL import Image

NOW = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)


def _png() -> bytes:
    img = Image.new("RGB", (32, 32), "white")
    bio = io.BytesIO()
    img.save(bio, format="PNG")
    return bio.getvalue()


def _section(client, headers, name="Medical Evidence", status="in-progress", order=1):
    r = client.post('/api/sections', json={'name': name, 'status': status, 'order': order}, headers=headers)
    assert r.status_code == 201
    return r.json()


def test_missing_document_surfaces_in_action_items(client, make_user):
    _, headers = make_user()
    section = _section(client, headers)
    r = client.post(
        f"/api/sections/{section['id']}/documents",
        data={'name': 'Specialist Reports', 'description': 'Orthopedic reports', 'category': 'medical', 'status': 'missing'},
        headers=headers,
    )
    assert r.status_code == 201
    doc = r.json()
    assert doc['status'] == 'missing'
    assert doc['uploaded_at'] is None

    body = client.get('/api/user/action-items', headers=headers).json()
    assert body['needsAttention'] == [{
        'type': 'missing_document',
        'id': doc['id'],
        'title': 'Specialist Reports',
        'description': 'Medical Evidence',
        'sectionId': section['id'],
        'sectionName': 'Medical Evidence',
        'deadline': None,
        'isOverdue': False,
    }]


def test_marking_document_uploaded_moves_it_to_completed(client, make_user, monkeypatch):
    monkeypatch.setattr("ssdi_tracker.main._clock", lambda: NOW)
    _, headers = make_user()
    section = _section(client, headers)
    doc = client.post(
        f"/api/sections/{section['id']}/documents",
        data={'name': 'Denial Letter', 'description': 'Official denial', 'category': 'legal', 'status': 'missing'},
        headers=headers,
    ).json()

    r = client.patch(f"/api/documents/{doc['id']}", json={'status': 'uploaded'}, headers=headers)
    assert r.status_code == 200
    assert r.json()['uploaded_at'].startswith('2024-03-05T12:00:00')

    body = client.get('/api/user/action-items', headers=headers).json()
    assert body['needsAttention'] == []
    assert [(i['type'], i['id']) for i in body['completed']] == [('completed_document', doc['id'])]


def test_upload_pdf_and_serve_file(client, make_user, pdf_bytes):
    _, headers = make_user()
    section = _section(client, headers)
    files = {'file': ('records.pdf', pdf_bytes, 'application/pdf')}
    data = {'name': 'Physician Records', 'description': 'Dr. Johnson records', 'category': 'medical'}
    r = client.post(f"/api/sections/{section['id']}/documents", data=data, files=files, headers=headers)
    assert r.status_code == 201
    doc = r.json()
    assert doc['status'] == 'uploaded'
    assert doc['file_size'] == len(pdf_bytes)
    assert doc['file_name'].endswith('.pdf')

    served = client.get(f"/api/files/{doc['file_name']}", headers=headers)
    assert served.status_code == 200
    assert served.content == pdf_bytes

    _, stranger = make_user('stranger')
    assert client.get(f"/api/files/{doc['file_name']}", headers=stranger).status_code == 404

    listed = client.get(f"/api/sections/{section['id']}/documents", headers=headers).json()
    assert [d['id'] for d in listed] == [doc['id']]
    assert client.delete(f"/api/documents/{doc['id']}", headers=headers).status_code == 200
    assert client.get(f"/api/files/{doc['file_name']}", headers=headers).status_code == 404


def test_upload_png_accepted_and_text_rejected(client, make_user):
    _, headers = make_user()
    section = _section(client, headers)
    data = {'name': 'ID card scan', 'description': 'Front side', 'category': 'personal'}
    ok = client.post(f"/api/sections/{section['id']}/documents", data=data,
                     files={'file': ('id.png', _png(), 'image/png')}, headers=headers)
    assert ok.status_code == 201

    bad = client.post(f"/api/sections/{section['id']}/documents", data=data,
                      files={'file': ('notes.png', b'not an image', 'image/png')}, headers=headers)
    assert bad.status_code == 415
    wrong_ext = client.post(f"/api/sections/{section['id']}/documents", data=data,
                            files={'file': ('notes.txt', b'hello', 'text/plain')}, headers=headers)
    assert wrong_ext.status_code == 415


def test_document_validation_and_ownership(client, make_user):
    _, headers = make_user()
    section = _section(client, headers)
    bad_category = client.post(f"/api/sections/{section['id']}/documents",
                               data={'name': 'x', 'description': 'y', 'category': 'astrology'}, headers=headers)
    assert bad_category.status_code == 400

    _, other = make_user('other')
    foreign = client.post(f"/api/sections/{section['id']}/documents",
                          data={'name': 'x', 'description': 'y', 'category': 'legal'}, headers=other)
    assert foreign.status_code == 404
    assert client.get(f"/api/sections/{section['id']}/documents", headers=other).status_code == 404


def test_sections_ordered_and_progress(client, make_user):
    _, headers = make_user()
    assert client.get('/api/sections/progress', headers=headers).json()['percentage'] == 0
    _section(client, headers, name="Appeals", status="needs-attention", order=4)
    _section(client, headers, name="Initial", status="complete", order=1)
    work = _section(client, headers, name="Work History", status="in-progress", order=3)

    names = [s['name'] for s in client.get('/api/sections', headers=headers).json()]
    assert names == ["Initial", "Work History", "Appeals"]

    r = client.patch(f"/api/sections/{work['id']}/status", json={'status': 'complete'}, headers=headers)
    assert r.status_code == 200
    progress = client.get('/api/sections/progress', headers=headers).json()
    assert progress == {'total': 3, 'complete': 2, 'in_progress': 0, 'needs_attention': 1, 'percentage': 67}

    _, other = make_user('other')
    assert client.patch(f"/api/sections/{work['id']}/status", json={'status': 'complete'}, headers=other).status_code == 404


def test_paper_copy_marked_uploaded_on_create_and_update_alike(client, make_user, monkeypatch):
    monkeypatch.setattr("ssdi_tracker.main._clock", lambda: NOW)
    _, headers = make_user()
    section = _section(client, headers)
    created = client.post(f"/api/sections/{section['id']}/documents",
                          data={'name': 'Birth Certificate', 'description': 'Handed in at the office',
                                'category': 'government', 'status': 'uploaded'},
                          headers=headers)
    assert created.status_code == 201
    assert created.json()['status'] == 'uploaded'
    assert created.json()['file_name'] is None
    assert created.json()['uploaded_at'].startswith('2024-03-05T12:00:00')

    pending = client.post(f"/api/sections/{section['id']}/documents",
                          data={'name': 'Tax Returns', 'description': 'Mailed', 'category': 'personal'},
                          headers=headers).json()
    assert pending['status'] == 'pending'
    updated = client.patch(f"/api/documents/{pending['id']}", json={'status': 'uploaded'}, headers=headers).json()
    assert updated['file_name'] is None
    assert updated['uploaded_at'] == created.json()['uploaded_at']


def test_upload_content_must_match_extension(client, make_user, pdf_bytes):
    _, headers = make_user()
    section = _section(client, headers)
    data = {'name': 'Records', 'description': 'Scan', 'category': 'medical'}
    cases = [
        ('records.docx', pdf_bytes),
        ('records.pdf', _png()),
        ('records.jpg', _png()),
    ]
    for filename, payload in cases:
        r = client.post(f"/api/sections/{section['id']}/documents", data=data,
                        files={'file': (filename, payload, 'application/octet-stream')}, headers=headers)
        assert r.status_code == 415, filename
    assert client.get(f"/api/sections/{section['id']}/documents", headers=headers).json() == []
