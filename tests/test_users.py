import pytest
from bson import ObjectId

import users
from errors import InvalidInput, NotFound
from tests.conftest import auth


def test_first_login_creates_user(db):
    result = users.upsert_on_login(db, "n@x.com", name="New")
    assert result["created"] is True

    user = db.users.find_one({"email": "n@x.com"})
    assert user["role"] == "user"
    assert user["status"] == "active"
    assert user["chefId"] is None
    assert user["created_at"] == user["last_loggedIn"]


def test_second_login_only_refreshes_timestamp(db):
    users.upsert_on_login(db, "n@x.com", name="New")
    db.users.update_one({"email": "n@x.com"}, {"$set": {"last_loggedIn": "earlier"}})
    before = db.users.find_one({"email": "n@x.com"})

    result = users.upsert_on_login(db, "n@x.com", name="Changed", image="http://img")

    after = db.users.find_one({"email": "n@x.com"})
    assert result["created"] is False
    assert after["last_loggedIn"] != "earlier"
    for field in ("role", "status", "chefId", "name", "image", "created_at"):
        assert after[field] == before[field]


def test_email_is_normalized(db):
    users.upsert_on_login(db, "  Mixed@X.com ")
    users.upsert_on_login(db, "mixed@x.com")
    assert db.users.count_documents({}) == 1
    assert db.users.find_one()["email"] == "mixed@x.com"


def test_flag_fraud(db):
    user_id = users.upsert_on_login(db, "bad@x.com")["id"]
    users.flag_fraud(db, user_id)
    assert db.users.find_one({"email": "bad@x.com"})["status"] == "fraud"

    with pytest.raises(NotFound):
        users.flag_fraud(db, str(ObjectId()))


def test_user_routes(client):
    resp = client.post("/user", json={"email": "A@x.com", "name": "Ann"})
    assert resp.status_code == 200
    user_id = resp.json()["id"]

    assert [u["email"] for u in client.get("/users").json()] == ["a@x.com"]
    assert client.get("/users/a@x.com", headers=auth()).json()["name"] == "Ann"
    assert client.get("/users/none@x.com", headers=auth()).status_code == 404

    resp = client.patch(f"/users/fraud/{user_id}")
    assert resp.status_code == 200
    assert client.get("/users/role/a@x.com", headers=auth()).json()["status"] == "fraud"


def test_blank_email_is_rejected(client, db):
    with pytest.raises(InvalidInput):
        users.upsert_on_login(db, "   ")

    resp = client.post("/user", json={"email": "   "})
    assert resp.status_code == 400
    assert db.users.count_documents({}) == 0
