def test_health(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.text == "OK"


def test_health_ignores_basic_auth(auth_client):
    r = auth_client.get("/")
    assert r.status_code == 200
    assert r.text == "OK"


def test_health_without_database(offline_client):
    assert offline_client.get("/").status_code == 200


def test_health_ignores_origin_policy(client):
    r = client.get("/", headers={"Origin": "https://evil.example.com"})
    assert r.status_code == 200
    assert r.text == "OK"
    assert "access-control-allow-origin" not in r.headers
