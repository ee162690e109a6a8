import pytest
from fastapi import status

from contact_manager import crud
from contact_manager.errors import AuthenticationFailed, Conflict, UserNotFound
from contact_manager.security import get_password_hash, verify_password


def test_password_hashing_roundtrip():
    password = "secret123"
    hashed = get_password_hash(password)
    assert hashed != password
    assert verify_password(password, hashed)
    assert not verify_password("wrong", hashed)


def test_create_user_stores_trimmed_username_and_hash(db_session):
    user = crud.create_user(db_session, "  bob  ", "secret123")
    assert user.id is not None
    assert user.username == "bob"
    assert user.password_hash != "secret123"
    assert crud.get_user_by_username(db_session, "bob").id == user.id


def test_usernames_are_unique_and_case_sensitive(db_session):
    crud.create_user(db_session, "alice", "secret1")
    with pytest.raises(Conflict):
        crud.create_user(db_session, "alice", "other-pass")
    assert crud.create_user(db_session, "Alice", "secret1").username == "Alice"
    assert crud.get_user_by_username(db_session, "ALICE") is None


def test_authenticate_distinguishes_unknown_user_and_bad_password(db_session):
    crud.create_user(db_session, "carol", "secret123")
    assert crud.authenticate(db_session, "carol", "secret123").username == "carol"
    with pytest.raises(AuthenticationFailed):
        crud.authenticate(db_session, "carol", "nope")
    with pytest.raises(UserNotFound):
        crud.authenticate(db_session, "nobody", "secret123")


def test_default_user_is_seeded_once(client, db_session, login):
    assert crud.get_user_by_username(db_session, "rcnj") is not None
    assert crud.ensure_default_user(db_session) is None
    login("rcnj", "password")


def test_signup_then_login_authenticates(client):
    response = client.post(
        "/auth/signup",
        data={"username": "alice", "password": "secret1", "confirm_password": "secret1"},
    )
    assert response.status_code == status.HTTP_303_SEE_OTHER
    assert response.headers["location"].startswith("/?success=")

    profile = client.get("/auth/profile")
    assert profile.status_code == status.HTTP_200_OK
    assert "alice" in profile.text

    client.post("/auth/logout")
    assert client.get("/auth/profile").status_code == status.HTTP_303_SEE_OTHER

    login_resp = client.post(
        "/auth/login", data={"username": "alice", "password": "secret1"}
    )
    assert login_resp.status_code == status.HTTP_303_SEE_OTHER
    assert "Welcome+back" in login_resp.headers["location"]
    assert client.get("/auth/profile").status_code == status.HTTP_200_OK


def test_wrong_password_stays_anonymous(client, create_user):
    create_user("dave", "secret123")
    response = client.post("/auth/login", data={"username": "dave", "password": "bad"})
    assert response.status_code == status.HTTP_303_SEE_OTHER
    assert "error=invalid_credentials" in response.headers["location"]

    profile = client.get("/auth/profile")
    assert profile.status_code == status.HTTP_303_SEE_OTHER
    assert profile.headers["location"] == "/auth/login?error=auth_required"


def test_login_unknown_user(client):
    response = client.post(
        "/auth/login", data={"username": "ghost", "password": "secret123"}
    )
    assert "error=user_not_found" in response.headers["location"]
    page = client.get(response.headers["location"])
    assert "No account found with that username." in page.text


@pytest.mark.parametrize(
    "form, reason",
    [
        ({"username": "al", "password": "secret1", "confirm_password": "secret1"},
         "username_too_short"),
        ({"username": "alice", "password": "abc", "confirm_password": "abc"},
         "password_too_short"),
        ({"username": "alice", "password": "secret1", "confirm_password": "secret2"},
         "password_mismatch"),
        ({"username": "alice", "password": "", "confirm_password": ""},
         "invalid_input"),
        ({"username": "   ", "password": "secret1", "confirm_password": "secret1"},
         "invalid_input"),
    ],
)
def test_signup_validation(client, form, reason):
    response = client.post("/auth/signup", data=form)
    assert response.status_code == status.HTTP_303_SEE_OTHER
    assert f"error={reason}" in response.headers["location"]
    assert client.get("/auth/profile").status_code == status.HTTP_303_SEE_OTHER


def test_signup_rejects_taken_username(client, create_user):
    create_user("erin")
    response = client.post(
        "/auth/signup",
        data={"username": "erin", "password": "secret1", "confirm_password": "secret1"},
    )
    assert "error=username_taken" in response.headers["location"]


def test_login_resumes_requested_page(client, create_user):
    create_user("frank")
    guarded = client.get("/contacts/add")
    assert guarded.status_code == status.HTTP_303_SEE_OTHER
    assert guarded.headers["location"] == "/auth/login?error=auth_required"

    response = client.post(
        "/auth/login", data={"username": "frank", "password": "secret123"}
    )
    assert response.headers["location"].startswith("/contacts/add?success=")


def test_login_and_signup_pages_redirect_when_authenticated(client, create_user, login):
    create_user("grace")
    login("grace")
    for path in ("/auth/login", "/auth/signup"):
        response = client.get(path)
        assert response.status_code == status.HTTP_303_SEE_OTHER
        assert response.headers["location"] == "/"


def test_logout_destroys_session(client, create_user, login):
    create_user("heidi")
    login("heidi")
    assert client.cookies.get("contact_manager_session")

    response = client.get("/auth/logout")
    assert response.status_code == status.HTTP_303_SEE_OTHER
    assert "info=" in response.headers["location"]
    assert client.get("/auth/profile").status_code == status.HTTP_303_SEE_OTHER


def test_duplicate_insert_is_reported_as_conflict(db_session, monkeypatch):
    crud.create_user(db_session, "zed", "secret123")
    # two signups that both passed the lookup before either committed
    monkeypatch.setattr(crud, "get_user_by_username", lambda db, username: None)
    with pytest.raises(Conflict):
        crud.create_user(db_session, "zed", "other-pass")
    monkeypatch.undo()

    assert crud.get_user_by_username(db_session, "zed") is not None
    assert crud.create_user(db_session, "zoe", "secret123").id is not None
