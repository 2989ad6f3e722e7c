"""
Tests for registration and login.
"""

import pytest

from main import pwd_context


def register(client, email="cashier@example.com", password="s3cret!"):
    return client.post("/api/register", json={"email": email, "password": password})


def test_register_creates_user_with_hashed_password(client, store):
    response = register(client)

    assert response.status_code == 200
    assert response.json() == {"message": "Registration successful"}

    users = store.get_documents("user", {"email": "cashier@example.com"})
    assert len(users) == 1
    assert users[0]["role"] == "user"
    assert users[0]["password"] != "s3cret!"
    assert pwd_context.verify("s3cret!", users[0]["password"])


def test_register_same_email_twice_conflicts(client, store):
    assert register(client).status_code == 200

    response = register(client, password="another")

    assert response.status_code == 400
    assert response.json()["message"] == "User already exists"
    assert len(store.get_documents("user")) == 1


@pytest.mark.parametrize("body", [
    {},
    {"email": "cashier@example.com"},
    {"password": "s3cret!"},
    {"email": "", "password": "s3cret!"},
    {"email": "cashier@example.com", "password": None},
])
def test_register_requires_email_and_password(client, store, body):
    response = client.post("/api/register", json=body)

    assert response.status_code == 400
    assert response.json() == {"message": "Please provide email and password"}
    assert store.get_documents("user") == []


def test_register_accepts_form_body(client, store):
    response = client.post("/api/register", data={"email": "form@example.com", "password": "pw"})

    assert response.status_code == 200
    assert store.get_documents("user", {"email": "form@example.com"})


def test_register_rejects_non_object_body(client):
    response = client.post("/api/register", content=b"not json", headers={"content-type": "application/json"})

    assert response.status_code == 400


def test_login_success_returns_email(client):
    register(client)

    response = client.post("/api/login", json={"email": "cashier@example.com", "password": "s3cret!"})

    assert response.status_code == 200
    assert response.json() == {"message": "Login successful", "user": {"email": "cashier@example.com"}}


def test_login_failures_are_indistinguishable(client):
    register(client)

    wrong_password = client.post("/api/login", json={"email": "cashier@example.com", "password": "nope"})
    unknown_email = client.post("/api/login", json={"email": "ghost@example.com", "password": "s3cret!"})

    assert wrong_password.status_code == unknown_email.status_code == 400
    assert wrong_password.json() == unknown_email.json() == {"message": "Invalid email or password"}


def test_login_requires_fields(client):
    response = client.post("/api/login", json={"email": "cashier@example.com"})

    assert response.status_code == 400
    assert response.json() == {"message": "Please provide email and password"}


def test_login_with_unrecognized_stored_hash_is_auth_error(client, store):
    store.create_document("user", {"email": "legacy@example.com", "password": "plaintext", "role": "user"})

    response = client.post("/api/login", json={"email": "legacy@example.com", "password": "plaintext"})

    assert response.status_code == 400
    assert response.json() == {"message": "Invalid email or password"}


def test_login_with_file_part_for_email_is_validation_error(client):
    response = client.post(
        "/api/login",
        data={"password": "s3cret!"},
        files={"email": ("email.txt", b"cashier@example.com", "text/plain")},
    )

    assert response.status_code == 400
    assert response.json() == {"message": "Please provide email and password"}


def test_auth_work_runs_in_threadpool(client, monkeypatch):
    import main

    offloaded = []
    real = main.run_in_threadpool

    async def recording(func, *args, **kwargs):
        offloaded.append(func.__name__)
        return await real(func, *args, **kwargs)

    monkeypatch.setattr(main, "run_in_threadpool", recording)

    register(client)
    client.post("/api/login", json={"email": "cashier@example.com", "password": "s3cret!"})

    assert offloaded == ["register_user", "authenticate"]
