import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.core.errors import IntegrityViolationError, NotFoundError, UnauthorizedError
from app.models.enums import FileStatus, TransactionStatus, TransactionType
from app.models.transaction import Transaction
from app.services.ledger_service import TransactionLedger, TransactionRecord
from app.services.transfer_service import Recipient, TransferStateMachine
from app.tests.factories import (
    count_transactions,
    create_department,
    create_file,
    create_user,
    principal_for,
)


@pytest.fixture
def world(db):
    registrar = create_department(db, "Registrar", type=None)
    sender = create_user(db, "sam")
    alice = create_user(db, "alice")
    bob = create_user(db, "bob", departments=[registrar])
    carl = create_user(db, "carl", departments=[registrar])
    f = create_file(db, sender, name="thesis.pdf")
    return {
        "registrar": registrar,
        "sender": sender,
        "alice": alice,
        "bob": bob,
        "carl": carl,
        "file": f,
    }


def _pending_send(db, user_id):
    return db.execute(
        select(Transaction).where(
            Transaction.user_id == user_id,
            Transaction.transaction_type == TransactionType.send.value,
        )
    ).scalar_one()


def test_recipient_parse():
    assert Recipient.parse("user:12") == Recipient("user", 12)
    assert Recipient.parse("sub_department:3") == Recipient("sub_department", 3)
    for bad in ("user", "group:1", "user:abc", "user:"):
        with pytest.raises(ValueError):
            Recipient.parse(bad)


def test_send_writes_send_and_notification_per_recipient(db, world):
    svc = TransferStateMachine()
    out = svc.send(
        db,
        file_id=world["file"].id,
        sender=principal_for(world["sender"]),
        recipients=[f"user:{world['alice'].id}", f"department:{world['registrar'].id}"],
        message="please review",
    )

    assert out["recipient_count"] == 3
    assert count_transactions(db, transaction_type="send", transaction_status="pending") == 3
    assert count_transactions(db, transaction_type="notification", transaction_status="pending") == 3

    for user in (world["alice"], world["bob"], world["carl"]):
        send_row = _pending_send(db, user.id)
        note = db.execute(
            select(Transaction).where(
                Transaction.correlation_id == send_row.correlation_id,
                Transaction.transaction_type == TransactionType.notification.value,
            )
        ).scalar_one()
        assert note.user_id == user.id
        assert send_row.counterparty_id == world["sender"].id
        assert "please review" in note.description

    # department members are addressed through their assignment
    assert _pending_send(db, world["bob"].id).users_department_id is not None
    assert _pending_send(db, world["alice"].id).users_department_id is None


def test_send_deduplicates_and_skips_sender(db, world):
    svc = TransferStateMachine()
    out = svc.send(
        db,
        file_id=world["file"].id,
        sender=principal_for(world["sender"]),
        recipients=[
            f"user:{world['bob'].id}",
            f"department:{world['registrar'].id}",
            f"user:{world['sender'].id}",
        ],
    )

    assert out["recipient_count"] == 2


def test_send_missing_file_is_not_found(db, world):
    with pytest.raises(NotFoundError):
        TransferStateMachine().send(
            db, file_id=999, sender=principal_for(world["sender"]), recipients=[f"user:{world['alice'].id}"]
        )


def test_send_deleted_file_is_not_found(db, world):
    world["file"].file_status = FileStatus.deleted.value
    db.commit()
    with pytest.raises(NotFoundError):
        TransferStateMachine().send(
            db,
            file_id=world["file"].id,
            sender=principal_for(world["sender"]),
            recipients=[f"user:{world['alice'].id}"],
        )


def test_send_by_non_owner_is_unauthorized(db, world):
    with pytest.raises(UnauthorizedError):
        TransferStateMachine().send(
            db,
            file_id=world["file"].id,
            sender=principal_for(world["alice"]),
            recipients=[f"user:{world['bob'].id}"],
        )
    assert count_transactions(db) == 0


def test_send_unknown_recipient_writes_nothing(db, world):
    with pytest.raises(NotFoundError):
        TransferStateMachine().send(
            db,
            file_id=world["file"].id,
            sender=principal_for(world["sender"]),
            recipients=[f"user:{world['alice'].id}", "user:4040"],
        )
    assert count_transactions(db) == 0


def test_send_with_only_self_is_rejected(db, world):
    with pytest.raises(ValueError):
        TransferStateMachine().send(
            db,
            file_id=world["file"].id,
            sender=principal_for(world["sender"]),
            recipients=[f"user:{world['sender'].id}"],
        )


def test_fan_out_failure_leaves_no_rows(db, world, monkeypatch):
    ledger = TransactionLedger()
    real_stage = ledger.stage
    calls = {"notifications": 0}

    def flaky_stage(session, record):
        if record.transaction_type == TransactionType.notification.value:
            calls["notifications"] += 1
            if calls["notifications"] == 2:
                raise OperationalError("INSERT INTO transactions", {}, Exception("connection lost"))
        return real_stage(session, record)

    monkeypatch.setattr(ledger, "stage", flaky_stage)
    svc = TransferStateMachine(ledger=ledger)

    with pytest.raises(IntegrityViolationError):
        svc.send(
            db,
            file_id=world["file"].id,
            sender=principal_for(world["sender"]),
            recipients=[f"user:{world['alice'].id}", f"department:{world['registrar'].id}"],
        )

    assert count_transactions(db) == 0


def test_accept_transitions_and_grants_co_ownership(db, world):
    svc = TransferStateMachine()
    svc.send(
        db,
        file_id=world["file"].id,
        sender=principal_for(world["sender"]),
        recipients=[f"user:{world['alice'].id}"],
    )
    send_row = _pending_send(db, world["alice"].id)
    correlation_id = send_row.correlation_id

    out = svc.respond(
        db, transaction_id=send_row.id, actor=principal_for(world["alice"]), decision="accept"
    )

    db.expire_all()
    assert out["status"] == TransactionStatus.accepted.value
    assert db.get(Transaction, send_row.id).transaction_status == TransactionStatus.accepted.value

    note = db.execute(
        select(Transaction).where(
            Transaction.correlation_id == correlation_id,
            Transaction.transaction_type == TransactionType.notification.value,
            Transaction.user_id == world["alice"].id,
        )
    ).scalar_one()
    assert note.transaction_status == TransactionStatus.accepted.value

    co = db.get(Transaction, out["co_ownership_id"])
    assert co.transaction_type == TransactionType.co_ownership.value
    assert co.transaction_status == TransactionStatus.completed.value
    assert co.user_id == world["alice"].id

    sender_notes = db.execute(
        select(Transaction).where(
            Transaction.user_id == world["sender"].id,
            Transaction.transaction_type == TransactionType.notification.value,
        )
    ).scalars().all()
    assert len(sender_notes) == 1
    assert "accepted by alice" in sender_notes[0].description
    assert count_transactions(db, transaction_type="accept") == 1


def test_deny_grants_nothing(db, world):
    svc = TransferStateMachine()
    svc.send(
        db,
        file_id=world["file"].id,
        sender=principal_for(world["sender"]),
        recipients=[f"user:{world['alice'].id}"],
    )
    send_row = _pending_send(db, world["alice"].id)

    out = svc.respond(
        db, transaction_id=send_row.id, actor=principal_for(world["alice"]), decision="deny"
    )

    assert out["status"] == TransactionStatus.denied.value
    assert out["co_ownership_id"] is None
    assert count_transactions(db, transaction_type="co_ownership") == 0
    assert count_transactions(db, transaction_type="notification", transaction_status="denied") == 1


def test_second_respond_is_not_found(db, world):
    svc = TransferStateMachine()
    svc.send(
        db,
        file_id=world["file"].id,
        sender=principal_for(world["sender"]),
        recipients=[f"user:{world['alice'].id}"],
    )
    tid = _pending_send(db, world["alice"].id).id
    alice = principal_for(world["alice"])

    svc.respond(db, transaction_id=tid, actor=alice, decision="accept")
    with pytest.raises(NotFoundError):
        svc.respond(db, transaction_id=tid, actor=alice, decision="accept")
    with pytest.raises(NotFoundError):
        svc.respond(db, transaction_id=tid, actor=alice, decision="deny")

    assert count_transactions(db, transaction_type="co_ownership") == 1


def test_concurrent_sessions_transition_once(SessionLocal, db, world):
    TransferStateMachine().send(
        db,
        file_id=world["file"].id,
        sender=principal_for(world["sender"]),
        recipients=[f"user:{world['alice'].id}"],
    )
    tid = _pending_send(db, world["alice"].id).id
    alice = principal_for(world["alice"])

    first, second = SessionLocal(), SessionLocal()
    try:
        outcomes = []
        for session in (first, second):
            try:
                TransferStateMachine().respond(session, transaction_id=tid, actor=alice, decision="accept")
                outcomes.append("ok")
            except NotFoundError:
                outcomes.append("not_found")
    finally:
        first.close()
        second.close()

    assert sorted(outcomes) == ["not_found", "ok"]
    assert count_transactions(db, transaction_type="co_ownership", file_id=world["file"].id) == 1


def test_respond_by_unrelated_user_is_not_found(db, world):
    svc = TransferStateMachine()
    svc.send(
        db,
        file_id=world["file"].id,
        sender=principal_for(world["sender"]),
        recipients=[f"user:{world['alice'].id}"],
    )
    tid = _pending_send(db, world["alice"].id).id

    with pytest.raises(NotFoundError):
        svc.respond(db, transaction_id=tid, actor=principal_for(world["carl"]), decision="accept")

    db.expire_all()
    assert db.get(Transaction, tid).transaction_status == TransactionStatus.pending.value


def test_department_member_may_answer_department_transfer(db, world):
    svc = TransferStateMachine()
    svc.send(
        db,
        file_id=world["file"].id,
        sender=principal_for(world["sender"]),
        recipients=[f"department:{world['registrar'].id}"],
    )
    bobs_row = _pending_send(db, world["bob"].id)

    # carl answers the row addressed to bob's registrar assignment
    out = svc.respond(
        db,
        transaction_id=bobs_row.id,
        actor=principal_for(world["carl"], [world["registrar"]]),
        decision="accept",
    )
    assert out["status"] == TransactionStatus.accepted.value


def test_department_answer_settles_every_member_row(db, world):
    svc = TransferStateMachine()
    svc.send(
        db,
        file_id=world["file"].id,
        sender=principal_for(world["sender"]),
        recipients=[f"department:{world['registrar'].id}", f"user:{world['alice'].id}"],
    )
    bobs_row = _pending_send(db, world["bob"].id)
    carls_row = _pending_send(db, world["carl"].id)
    carl = principal_for(world["carl"], [world["registrar"]])

    svc.respond(db, transaction_id=bobs_row.id, actor=carl, decision="accept")
    with pytest.raises(NotFoundError):
        svc.respond(db, transaction_id=carls_row.id, actor=carl, decision="accept")

    db.expire_all()
    assert db.get(Transaction, bobs_row.id).transaction_status == TransactionStatus.accepted.value
    assert db.get(Transaction, carls_row.id).transaction_status == TransactionStatus.accepted.value
    assert count_transactions(db, transaction_type="notification", transaction_status="accepted") == 2
    assert count_transactions(db, transaction_type="co_ownership", file_id=world["file"].id) == 1
    assert count_transactions(db, transaction_type="notification", user_id=world["sender"].id) == 1
    # the direct send to alice is a separate transfer
    assert _pending_send(db, world["alice"].id).transaction_status == TransactionStatus.pending.value


def test_legacy_respond_leaves_unrelated_notifications(db, world):
    ledger = TransactionLedger()
    alice, sender, f = world["alice"], world["sender"], world["file"]
    tid = ledger.append(db, TransactionRecord(
        transaction_type="file_sent", transaction_status="pending", user_id=alice.id,
        file_id=f.id, counterparty_id=sender.id, description="File sent for review",
    ))
    received_id = ledger.append(db, TransactionRecord(
        transaction_type="notification", transaction_status="pending", user_id=alice.id,
        file_id=f.id, action_kind="received", description="You have received a file",
    ))
    upload_id = ledger.append(db, TransactionRecord(
        transaction_type="notification", transaction_status="pending", user_id=alice.id,
        file_id=f.id, action_kind="uploaded", description="Upload file successful: thesis.pdf",
    ))

    TransferStateMachine(ledger=ledger).respond(
        db, transaction_id=tid, actor=principal_for(alice), decision="deny"
    )

    db.expire_all()
    assert db.get(Transaction, received_id).transaction_status == TransactionStatus.denied.value
    assert db.get(Transaction, upload_id).transaction_status == TransactionStatus.pending.value


def test_send_many_is_all_or_nothing(db, world):
    foreign = create_file(db, world["alice"], name="alice.pdf")
    with pytest.raises(UnauthorizedError):
        TransferStateMachine().send_many(
            db,
            file_ids=[world["file"].id, foreign.id],
            sender=principal_for(world["sender"]),
            recipients=[f"user:{world['bob'].id}"],
        )
    assert count_transactions(db) == 0

    out = TransferStateMachine().send_many(
        db,
        file_ids=[world["file"].id, world["file"].id],
        sender=principal_for(world["sender"]),
        recipients=[f"user:{world['bob'].id}"],
    )
    assert [o["file_id"] for o in out] == [world["file"].id]


def test_failure_mid_respond_leaves_row_pending(db, world, monkeypatch):
    svc = TransferStateMachine()
    svc.send(
        db,
        file_id=world["file"].id,
        sender=principal_for(world["sender"]),
        recipients=[f"user:{world['alice'].id}"],
    )
    tid = _pending_send(db, world["alice"].id).id
    before = count_transactions(db)

    def broken_notify(*args, **kwargs):
        raise OperationalError("INSERT INTO transactions", {}, Exception("server closed the connection"))

    monkeypatch.setattr(svc.notifications, "notify", broken_notify)

    with pytest.raises(IntegrityViolationError):
        svc.respond(db, transaction_id=tid, actor=principal_for(world["alice"]), decision="accept")

    db.expire_all()
    assert db.get(Transaction, tid).transaction_status == TransactionStatus.pending.value
    assert count_transactions(db) == before
    assert count_transactions(db, transaction_type="co_ownership") == 0


def test_mark_as_read_then_accept_updates_notification(db, world):
    from app.services.notification_service import NotificationProjector

    svc = TransferStateMachine()
    svc.send(
        db,
        file_id=world["file"].id,
        sender=principal_for(world["sender"]),
        recipients=[f"user:{world['alice'].id}"],
    )
    NotificationProjector().list_notifications(db, user_id=world["alice"].id, mark_as_read=True)
    tid = _pending_send(db, world["alice"].id).id

    svc.respond(db, transaction_id=tid, actor=principal_for(world["alice"]), decision="accept")

    assert count_transactions(
        db, transaction_type="notification", user_id=world["alice"].id, transaction_status="accepted"
    ) == 1


def test_incoming_and_outgoing(db, world):
    svc = TransferStateMachine()
    svc.send(
        db,
        file_id=world["file"].id,
        sender=principal_for(world["sender"]),
        recipients=[f"user:{world['alice'].id}", f"user:{world['bob'].id}"],
    )

    incoming = svc.incoming(db, actor=principal_for(world["alice"]))
    assert len(incoming) == 1
    assert incoming[0]["sender"] == "sam"
    assert incoming[0]["file_name"] == "thesis.pdf"

    outgoing = svc.outgoing(db, actor=principal_for(world["sender"]))
    assert {o["recipient"] for o in outgoing} == {"alice", "bob"}
