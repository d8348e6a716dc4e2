from app.core.security import decode_token, hash_password
from app.models.transaction import Transaction
from app.services.auth_service import authenticate, issue_token
from app.tests.factories import create_department, create_user


def test_successful_login_returns_principal_and_logs(db):
    reg = create_department(db, "Registrar")
    user = create_user(db, "dora", departments=[reg], password_hash=hash_password("s3cret"))

    principal = authenticate(db, "dora", "s3cret")

    assert principal.user_id == user.id
    assert principal.department_ids == (reg.id,)
    row = db.query(Transaction).filter_by(transaction_type="login").one()
    assert row.transaction_status == "completed"
    assert row.user_id == user.id
    assert row.action_kind == "logged_in"


def test_wrong_password_logs_failure(db):
    user = create_user(db, "dora", password_hash=hash_password("s3cret"))

    assert authenticate(db, "dora", "nope") is None

    row = db.query(Transaction).filter_by(transaction_type="login").one()
    assert row.transaction_status == "failed"
    assert row.user_id == user.id


def test_unknown_user_logs_failure_without_user(db):
    assert authenticate(db, "ghost", "whatever") is None

    row = db.query(Transaction).filter_by(transaction_type="login").one()
    assert row.transaction_status == "failed"
    assert row.user_id is None
    assert "ghost" in row.description


def test_issued_token_carries_principal_claims(db):
    reg = create_department(db, "Registrar")
    create_user(db, "dora", departments=[reg], password_hash=hash_password("s3cret"))
    principal = authenticate(db, "dora", "s3cret")

    claims = decode_token(issue_token(principal))

    assert claims["user_id"] == principal.user_id
    assert claims["username"] == "dora"
    assert claims["department_ids"] == [reg.id]
