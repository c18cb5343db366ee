def test_list_records_empty(client, patient_headers):
    response = client.get("/api/records", headers=patient_headers)

    assert response.status_code == 200
    assert response.json() == []


def test_create_and_get_record(client, patient_headers):
    payload = {
        "title": "Metformin 500mg",
        "content": "Twice daily with meals.",
        "record_type": "medication",
    }

    create_response = client.post("/api/records", json=payload, headers=patient_headers)

    assert create_response.status_code == 201
    created = create_response.json()
    assert created["id"] == 1
    assert created["title"] == payload["title"]
    assert created["record_type"] == payload["record_type"]
    assert created["patient_id"] == "P0009"
    assert "created_at" in created

    list_response = client.get("/api/records", headers=patient_headers)

    assert list_response.status_code == 200
    listed = list_response.json()
    assert len(listed) == 1
    assert listed[0]["id"] == created["id"]

    get_response = client.get("/api/records/1", headers=patient_headers)

    assert get_response.status_code == 200
    assert get_response.json()["content"] == payload["content"]


def test_record_type_must_be_known(client, patient_headers):
    response = client.post(
        "/api/records",
        json={"title": "Note", "content": "text", "record_type": "visit_note"},
        headers=patient_headers,
    )

    assert response.status_code == 422


def test_other_patients_record_is_hidden(client, patient_headers, auth_headers):
    client.post(
        "/api/records",
        json={"title": "Peanut allergy", "content": "Severe", "record_type": "allergy"},
        headers=patient_headers,
    )
    other = auth_headers("P0010", "patient")

    assert client.get("/api/records/1", headers=other).status_code == 404
    assert client.delete("/api/records/1", headers=other).status_code == 404
    assert client.get("/api/records", headers=other).json() == []


def test_delete_record(client, patient_headers):
    client.post(
        "/api/records",
        json={"title": "Asthma", "content": "Mild", "record_type": "condition"},
        headers=patient_headers,
    )

    response = client.delete("/api/records/1", headers=patient_headers)

    assert response.status_code == 204
    assert client.get("/api/records/1", headers=patient_headers).status_code == 404


def test_doctor_token_cannot_manage_records(client, doctor_headers):
    response = client.get("/api/records", headers=doctor_headers)

    assert response.status_code == 403
