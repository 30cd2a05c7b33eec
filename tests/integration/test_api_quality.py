def test_error_response_has_unified_shape(client):
    response = client.get("/users/me")
    assert response.status_code == 401
    body = response.json()
    assert "error" in body
    assert "code" in body["error"]
    assert "message" in body["error"]
    assert "detail" in body
    assert "request_id" in body


def test_domain_error_carries_error_kind(client, auth_headers):
    headers = auth_headers("gate@example.com", "customer")

    response = client.post("/patients", headers=headers, json={"full_name": "Lakshmi Devi"})

    assert response.status_code == 428
    body = response.json()
    assert body["errorKind"] == "ConsentRequired"
    assert body["error"]["kind"] == "ConsentRequired"
    assert body["message"].startswith("Required consents not accepted")
    assert "terms_and_conditions" in body["detail"]["missing_consents"]
    assert "request_id" in body


def test_validation_error_shape(client, auth_headers):
    headers = auth_headers("admin-validation@example.com", "admin")

    response = client.post("/services", headers=headers, json={"name": "X", "price": "-1"})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


def test_health_endpoint_returns_ok_and_request_id(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert "x-request-id" in response.headers


def test_services_pagination_limit_offset(client, auth_headers):
    headers = auth_headers("pagination-admin@example.com", "admin")

    first = client.post("/services", headers=headers, json={"name": "Home Nursing", "price": "500.00"}).json()
    second = client.post("/services", headers=headers, json={"name": "Physiotherapy", "price": "800.00"}).json()

    paged = client.get("/services?limit=1&offset=1")
    assert paged.status_code == 200
    data = paged.json()
    assert len(data) == 1
    assert data[0]["id"] == second["id"]
    assert data[0]["id"] != first["id"]


def test_duplicate_service_name_returns_409(client, auth_headers):
    headers = auth_headers("dup-admin@example.com", "admin")
    payload = {"name": "Elder Care", "price": "400.00"}

    first = client.post("/services", headers=headers, json=payload)
    second = client.post("/services", headers=headers, json=payload)

    assert first.status_code == 201
    assert second.status_code == 409


def test_limit_out_of_range_is_rejected(client):
    response = client.get("/services?limit=500")
    assert response.status_code == 422
