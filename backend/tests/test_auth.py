"""
Login, session cookie and role checks
"""
from api.routes.auth import LoginThrottle
from core.config import settings
from core.security import hash_password
from models.user import User


def _make_user(db, username="admin", password="secret-pass", role="admin", is_active=True):
    user = User(username=username, password_hash=hash_password(password), role=role, name="Admin", is_active=is_active)
    db.add(user)
    db.commit()
    return user


def test_login_sets_cookie_and_returns_token(client, db):
    _make_user(db)
    resp = client.post("/api/auth/login", json={"username": " Admin ", "password": "secret-pass"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["tokenType"] == "bearer"
    assert body["user"]["username"] == "admin"
    assert body["user"]["role"] == "admin"
    assert "access_token" in resp.cookies

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["username"] == "admin"


def test_login_bad_password(client, db):
    _make_user(db)
    resp = client.post("/api/auth/login", json={"username": "admin", "password": "wrong"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "INVALID_CREDENTIALS"


def test_login_disabled_user(client, db):
    _make_user(db, is_active=False)
    resp = client.post("/api/auth/login", json={"username": "admin", "password": "secret-pass"})
    assert resp.status_code == 403
    assert resp.json()["detail"] == "USER_DISABLED"


def test_logout_clears_cookie(client, db):
    _make_user(db)
    client.post("/api/auth/login", json={"username": "admin", "password": "secret-pass"})
    assert client.post("/api/auth/logout").json() == {"ok": True}
    assert client.get("/api/auth/me").status_code == 401


def test_protected_routes_need_a_token(client):
    resp = client.get("/api/schools")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "NOT_AUTHENTICATED"


def test_garbage_token(client, db):
    resp = client.get("/api/schools", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "INVALID_TOKEN"


def test_teacher_can_read_but_not_write(client, teacher_headers):
    assert client.get("/api/schools", headers=teacher_headers).status_code == 200

    resp = client.post(
        "/api/schools",
        headers=teacher_headers,
        json={"name": "Dar al-Ilm", "type": "madrasa", "foundedYear": 2001},
    )
    assert resp.status_code == 403
    assert resp.json()["detail"] == "NOT_AUTHORIZED"


def test_health(client):
    assert client.get("/health").json()["app"] == "ok"


def test_throttle_window_slides():
    throttle = LoginThrottle(max_attempts=2, window_seconds=60)
    assert throttle.hit("ip:admin", now=0)
    assert throttle.hit("ip:admin", now=1)
    assert not throttle.hit("ip:admin", now=2)
    assert throttle.hit("ip:other", now=2)
    assert throttle.hit("ip:admin", now=61)


def test_repeated_logins_are_rate_limited(client):
    for _ in range(settings.login_max_attempts):
        assert client.post("/api/auth/login", json={"username": "ghost", "password": "x"}).status_code == 401
    resp = client.post("/api/auth/login", json={"username": "GHOST", "password": "x"})
    assert resp.status_code == 429
    assert resp.json()["detail"] == "RATE_LIMITED"
