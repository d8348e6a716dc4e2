import pytest
from fastapi.testclient import TestClient

from app.core.security import hash_password
from app.db.session import get_db
from app.main import create_app
from app.tests.factories import count_transactions, create_department, create_file, create_user

PREFIX = "/api/v1"


@pytest.fixture
def client(SessionLocal):
    app = create_app()

    def _get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    return TestClient(app)


@pytest.fixture
def people(db):
    coe = create_department(db, "CoE")
    bsit = create_department(db, "BSIT", parent=coe)
    reg = create_department(db, "Registrar")
    owner = create_user(db, "olga", departments=[coe], password_hash=hash_password("pass123"))
    clerk = create_user(db, "cleo", departments=[reg], password_hash=hash_password("pass123"))
    f = create_file(db, owner, name="minutes.pdf", department=coe, sub_department=bsit, cabinet="A", folder="4")
    return {"coe": coe, "reg": reg, "owner": owner, "clerk": clerk, "file": f}


def login(client, username, password="pass123"):
    r = client.post(f"{PREFIX}/auth/login", json={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


def test_health(client):
    r = client.get(f"{PREFIX}/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["database"] == "ok"
    assert r.headers.get("X-Request-ID")


def test_login_rejects_bad_password(client, people):
    r = client.post(f"{PREFIX}/auth/login", json={"username": "olga", "password": "wrong"})
    assert r.status_code == 401


def test_me_requires_token(client):
    assert client.get(f"{PREFIX}/auth/me").status_code in (401, 403)


def test_me_reflects_departments(client, people):
    r = client.get(f"{PREFIX}/auth/me", headers=login(client, "olga"))
    assert r.status_code == 200
    assert r.json()["departmentIds"] == [people["coe"].id]


def test_location_and_history(client, people):
    headers = login(client, "olga")
    fid = people["file"].id

    loc = client.get(f"{PREFIX}/files/{fid}/location", headers=headers)
    assert loc.status_code == 200
    assert loc.json()["path"] == "CoE → BSIT → A → 4"

    assert client.post(f"{PREFIX}/files/{fid}/scan", headers=headers).status_code == 200

    hist = client.get(f"{PREFIX}/files/{fid}/history", headers=headers)
    assert hist.status_code == 200
    assert [h["action"] for h in hist.json()["history"]] == ["Scanned by olga"]


def test_outsider_cannot_read_location(client, people):
    r = client.get(f"{PREFIX}/files/{people['file'].id}/location", headers=login(client, "cleo"))
    assert r.status_code == 403


def test_missing_file_is_404(client, people):
    r = client.get(f"{PREFIX}/files/9999/location", headers=login(client, "olga"))
    assert r.status_code == 404


def test_register_file(client, people):
    r = client.post(
        f"{PREFIX}/files",
        json={"fileName": "budget.xlsx", "departmentId": people["coe"].id, "copyType": "hard",
              "location": {"cabinet": "B", "folder": "2"}},
        headers=login(client, "olga"),
    )
    assert r.status_code == 201, r.text
    assert r.json()["copyType"] == "hard"


def test_send_respond_and_notifications(client, people):
    owner_h = login(client, "olga")
    clerk_h = login(client, "cleo")
    fid = people["file"].id

    sent = client.post(
        f"{PREFIX}/transfers/send",
        json={"fileIds": [fid], "recipients": [f"department:{people['reg'].id}"], "message": "for filing"},
        headers=owner_h,
    )
    assert sent.status_code == 200, sent.text
    assert sent.json()["results"][0]["recipientCount"] == 1

    incoming = client.get(f"{PREFIX}/transfers/incoming", headers=clerk_h).json()["transfers"]
    assert len(incoming) == 1
    tid = incoming[0]["transactionId"]

    assert client.get(f"{PREFIX}/notifications/unread-count", headers=clerk_h).json()["unread"] == 1
    page = client.get(f"{PREFIX}/notifications", params={"markAsRead": True}, headers=clerk_h)
    assert page.json()["notifications"][0]["status"] == "pending"
    assert client.get(f"{PREFIX}/notifications/unread-count", headers=clerk_h).json()["unread"] == 0

    ok = client.post(f"{PREFIX}/transfers/{tid}/respond", json={"action": "accept"}, headers=clerk_h)
    assert ok.status_code == 200, ok.text
    assert ok.json()["status"] == "accepted"
    assert ok.json()["coOwnershipId"]

    again = client.post(f"{PREFIX}/transfers/{tid}/respond", json={"action": "deny"}, headers=clerk_h)
    assert again.status_code == 404

    # co-ownership opens the file to the clerk
    assert client.get(f"{PREFIX}/files/{fid}", headers=clerk_h).status_code == 200

    ledger = client.get(f"{PREFIX}/ledger/files/{fid}", headers=owner_h).json()["records"]
    assert {r["type"] for r in ledger} >= {"send", "notification", "co_ownership", "accept"}


def test_send_by_non_owner_is_403(client, people):
    r = client.post(
        f"{PREFIX}/transfers/send",
        json={"fileIds": [people["file"].id], "recipients": [f"user:{people['owner'].id}"]},
        headers=login(client, "cleo"),
    )
    assert r.status_code == 403


def test_bad_recipient_is_400(client, people):
    r = client.post(
        f"{PREFIX}/transfers/send",
        json={"fileIds": [people["file"].id], "recipients": ["team:1"]},
        headers=login(client, "olga"),
    )
    assert r.status_code == 400


def test_multi_file_send_with_a_foreign_file_sends_nothing(client, db, people):
    foreign = create_file(db, people["clerk"], name="clerk-notes.pdf")
    r = client.post(
        f"{PREFIX}/transfers/send",
        json={"fileIds": [people["file"].id, foreign.id], "recipients": [f"user:{people['clerk'].id}"]},
        headers=login(client, "olga"),
    )
    assert r.status_code == 403
    assert count_transactions(db, transaction_type="send") == 0
    assert count_transactions(db, transaction_type="notification") == 0
