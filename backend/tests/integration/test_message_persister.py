"""Integration tests for storing inbound messages"""

from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from domain.inbound_email.errors import PersistenceError
from domain.inbound_email.models import InboundEmail, RoutingResult, RoutingSignal, SignalType
from domain.inbound_email.persister import MessagePersister
from models import ApplicationMessage, ApplicationStatus, MatchConfidence
from conftest import make_application


def make_email(message_id="<reply-1@klinikum-x.de>", **overrides):
    values = {
        "recipient": "max.mueller@relay.test",
        "sender": "personal@klinikum-x.de",
        "subject": "Re: Bewerbung",
        "text_body": "Vielen Dank",
        "message_id": message_id,
        "in_reply_to": "<orig@relay.test>",
    }
    values.update(overrides)
    return InboundEmail(**values)


class TestPersist:

    def test_linked_reply_marks_application_replied(self, db_session, max_mueller):
        app = make_application(db_session, max_mueller, "personal@klinikum-x.de")
        routing = RoutingResult(
            application_id=app.id,
            confidence=MatchConfidence.HIGH,
            signals=[RoutingSignal(SignalType.SENDER_EXACT, 80, app.id, "personal@klinikum-x.de")],
        )

        message = MessagePersister(db_session).persist(
            max_mueller.id, "max.mueller@relay.test", make_email(), routing, {"k": "v"},
        )

        db_session.refresh(app)
        assert app.status == ApplicationStatus.REPLIED.value
        assert message.application_id == app.id
        assert message.direction == "inbound"
        assert message.match_confidence == "high"
        assert message.match_signals == [{
            "type": "sender_exact",
            "weight": 80,
            "matched_value": "personal@klinikum-x.de",
            "application_id": str(app.id),
        }]
        assert message.headers == {"In-Reply-To": "<orig@relay.test>", "References": ""}
        assert message.payload == {"k": "v"}

    def test_unlinked_reply_leaves_status(self, db_session, max_mueller):
        app = make_application(db_session, max_mueller, "hr@klinikum-x.de")

        message = MessagePersister(db_session).persist(
            max_mueller.id, "max.mueller@relay.test", make_email(),
            RoutingResult(confidence=MatchConfidence.LOW), {},
        )

        db_session.refresh(app)
        assert app.status == ApplicationStatus.SENT.value
        assert message.application_id is None

    def test_preallocated_id_used(self, db_session, max_mueller):
        message_uuid = uuid4()

        message = MessagePersister(db_session).persist(
            max_mueller.id, "max.mueller@relay.test", make_email(), RoutingResult(), {},
            message_uuid=message_uuid,
        )

        assert message.id == message_uuid

    def test_missing_message_id_stored_as_null(self, db_session, max_mueller):
        persister = MessagePersister(db_session)

        first = persister.persist(max_mueller.id, "max.mueller@relay.test", make_email(message_id=""), RoutingResult(), {})
        second = persister.persist(max_mueller.id, "max.mueller@relay.test", make_email(message_id=""), RoutingResult(), {})

        assert first.message_id is None
        assert second is not None


class TestDuplicates:

    def test_find_duplicate(self, db_session, max_mueller, erika_schmidt):
        persister = MessagePersister(db_session)
        stored = persister.persist(max_mueller.id, "max.mueller@relay.test", make_email(), RoutingResult(), {})

        assert persister.find_duplicate(max_mueller.id, "<reply-1@klinikum-x.de>").id == stored.id
        assert persister.find_duplicate(erika_schmidt.id, "<reply-1@klinikum-x.de>") is None
        assert persister.find_duplicate(max_mueller.id, "") is None

    def test_concurrent_duplicate_returns_none(self, db_session, max_mueller):
        app = make_application(db_session, max_mueller, "personal@klinikum-x.de")
        persister = MessagePersister(db_session)
        persister.persist(max_mueller.id, "max.mueller@relay.test", make_email(), RoutingResult(), {})

        second = persister.persist(
            max_mueller.id, "max.mueller@relay.test", make_email(),
            RoutingResult(application_id=app.id, confidence=MatchConfidence.HIGH), {},
        )

        db_session.refresh(app)
        assert second is None
        assert app.status == ApplicationStatus.SENT.value
        assert db_session.query(ApplicationMessage).count() == 1

    def test_database_failure_raises_persistence_error(self, db_session, max_mueller, monkeypatch):
        def failing_flush(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(db_session, "flush", failing_flush)

        with pytest.raises(PersistenceError):
            MessagePersister(db_session).persist(
                max_mueller.id, "max.mueller@relay.test", make_email(), RoutingResult(), {},
            )
