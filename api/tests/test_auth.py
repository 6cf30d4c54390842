def register(client, email="owner@corner-shop.com", password="secret123", full_name="Marta Owner"):
    return client.post("/auth/register", json={"email": email, "password": password, "full_name": full_name})


def login(client, email="owner@corner-shop.com", password="secret123"):
    return client.post("/auth/login", json={"email": email, "password": password})


def test_register_and_login(client):
    created = register(client)
    assert created.status_code == 201
    assert created.json()["email"] == "owner@corner-shop.com"
    assert created.json()["role"] == "cashier"
    assert "password_hash" not in created.json()

    response = login(client, email="Owner@Corner-Shop.com")
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["full_name"] == "Marta Owner"
    assert data["role"] == "cashier"

    me = client.get("/users/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert me.status_code == 200
    assert me.json()["last_login_at"] is not None


def test_duplicate_email_is_rejected(client):
    register(client)

    response = register(client, email="OWNER@corner-shop.com")

    assert response.status_code == 409


def test_short_password_is_rejected(client):
    assert register(client, password="123").status_code == 422


def test_wrong_password(client):
    register(client)

    response = login(client, password="wrong-password")

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_unknown_email(client):
    assert login(client, email="nobody@corner-shop.com").status_code == 401


def test_update_full_name(client, auth_headers):
    response = client.patch("/users/me", json={"full_name": "Ana Head Cashier"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["full_name"] == "Ana Head Cashier"


def test_change_password(client, auth_headers, user):
    response = client.patch(
        "/users/me",
        json={"current_password": "secret123", "new_password": "better456", "confirm_password": "better456"},
        headers=auth_headers,
    )
    assert response.status_code == 200

    assert login(client, email=user["email"], password="secret123").status_code == 401
    assert login(client, email=user["email"], password="better456").status_code == 200


def test_change_password_needs_current_one(client, auth_headers):
    wrong = client.patch(
        "/users/me",
        json={"current_password": "nope", "new_password": "better456", "confirm_password": "better456"},
        headers=auth_headers,
    )
    assert wrong.status_code == 400

    mismatch = client.patch(
        "/users/me",
        json={"current_password": "secret123", "new_password": "better456", "confirm_password": "other789"},
        headers=auth_headers,
    )
    assert mismatch.status_code == 422


def test_health_needs_no_token(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_password_over_bcrypt_limit_is_rejected(client):
    assert register(client, password="ñ" * 40).status_code == 422
