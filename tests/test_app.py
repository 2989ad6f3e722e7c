from pymongo.errors import PyMongoError


def test_root_greeting(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "Storefront POS" in response.text


def test_database_diagnostics(client, product_id):
    info = client.get("/test").json()

    assert info["connection_status"] == "Connected"
    assert info["database_name"] == "pos_test"
    assert "product" in info["collections"]


def test_store_failure_echoes_driver_message(client, store, monkeypatch):
    def boom(*args, **kwargs):
        raise PyMongoError("connection refused")

    monkeypatch.setattr(store, "get_documents", boom)

    response = client.get("/api/products")

    assert response.status_code == 500
    assert response.json() == {"message": "Failed to fetch products", "error": "connection refused"}


def test_register_store_failure(client, store, monkeypatch):
    def boom(*args, **kwargs):
        raise PyMongoError("server selection timeout")

    monkeypatch.setattr(store, "get_documents", boom)

    response = client.post("/api/register", json={"email": "a@example.com", "password": "pw"})

    assert response.status_code == 500
    assert response.json()["message"] == "Registration failed"
