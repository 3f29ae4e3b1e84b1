"""Security tests for cross-user isolation

A reply addressed to one applicant must never be linked to, or change the
status of, another applicant's application.

Tests cover:
- Smart routing never considers another user's applications
- Thread headers referencing another user's messages are ignored
- Direct addresses resolve only to the application owning the token
"""

import pytest

import sys
from pathlib import Path
backend_src = Path(__file__).parent.parent.parent / "src"
sys.path.insert(0, str(backend_src))

from models import ApplicationMessage, ApplicationStatus
from conftest import INBOUND_URL, TEST_DOMAIN, make_application


pytestmark = pytest.mark.security

MAX_ALIAS = f"max.mueller@{TEST_DOMAIN}"
TOKEN = "k3x9p2m7q1w8"


def inbound_messages(db):
    return db.query(ApplicationMessage).filter(ApplicationMessage.direction == "inbound").all()


class TestSmartRoutingIsolation:

    def test_exact_sender_match_on_foreign_application_ignored(
        self, client, db_session, signed_form, max_mueller, erika_schmidt,
    ):
        foreign = make_application(db_session, erika_schmidt, "personal@klinikum-x.de")

        response = client.post(INBOUND_URL, data=signed_form(recipient=MAX_ALIAS))

        assert response.status_code == 200
        [message] = inbound_messages(db_session)
        assert message.user_id == max_mueller.id
        assert message.application_id is None

        db_session.refresh(foreign)
        assert foreign.status == ApplicationStatus.SENT.value

    def test_foreign_thread_header_ignored(
        self, client, db_session, signed_form, max_mueller, erika_schmidt,
    ):
        own = make_application(db_session, max_mueller, "hr@andere-klinik.de")
        foreign = make_application(db_session, erika_schmidt, "hr@klinikum-x.de")
        db_session.add(ApplicationMessage(
            application_id=foreign.id,
            user_id=erika_schmidt.id,
            direction="outbound",
            provider_message_id="<erika-sent@relay.test>",
        ))
        db_session.commit()

        response = client.post(
            INBOUND_URL,
            data=signed_form(recipient=MAX_ALIAS, **{"In-Reply-To": "<erika-sent@relay.test>"}),
        )

        assert response.status_code == 200
        [message] = inbound_messages(db_session)
        assert message.application_id in (None, own.id)
        assert "header_match" not in [s["type"] for s in message.match_signals]

    def test_forward_goes_to_alias_owner(
        self, client, db_session, mail_sender, signed_form, max_mueller, erika_schmidt,
    ):
        make_application(db_session, erika_schmidt, "personal@klinikum-x.de")

        client.post(INBOUND_URL, data=signed_form(recipient=MAX_ALIAS))

        assert [sent["to"] for sent in mail_sender.sent] == ["max.privat@example.org"]


class TestDirectRoutingIsolation:

    def test_alias_in_address_does_not_redirect_token(
        self, client, db_session, mail_sender, signed_form, max_mueller, erika_schmidt,
    ):
        erika_app = make_application(db_session, erika_schmidt, "hr@klinikum-x.de", reply_token=TOKEN)

        # Token belongs to Erika; the alias part names Max
        response = client.post(
            INBOUND_URL,
            data=signed_form(recipient=f"max.mueller.{TOKEN}@{TEST_DOMAIN}"),
        )

        assert response.status_code == 200
        [message] = inbound_messages(db_session)
        assert message.user_id == erika_schmidt.id
        assert message.application_id == erika_app.id
        assert mail_sender.sent[0]["to"] == "erika.privat@example.org"

    def test_shared_token_across_users_not_guessed(
        self, client, db_session, signed_form, max_mueller, erika_schmidt,
    ):
        make_application(db_session, max_mueller, "hr@klinikum-x.de", reply_token=TOKEN, reply_to=f"max.mueller.{TOKEN}@{TEST_DOMAIN}")
        make_application(db_session, erika_schmidt, "hr@klinikum-y.de", reply_token=TOKEN, reply_to=f"max.mueller.{TOKEN}@{TEST_DOMAIN}")

        response = client.post(INBOUND_URL, data=signed_form(recipient=f"max.mueller.{TOKEN}@{TEST_DOMAIN}"))

        assert response.status_code == 404
        assert inbound_messages(db_session) == []

    def test_duplicate_check_scoped_per_user(
        self, client, db_session, signed_form, max_mueller, erika_schmidt,
    ):
        form_max = signed_form(recipient=MAX_ALIAS, **{"Message-Id": "<same@klinikum-x.de>"})
        form_erika = signed_form(recipient=f"erika.schmidt@{TEST_DOMAIN}", **{"Message-Id": "<same@klinikum-x.de>"})

        client.post(INBOUND_URL, data=form_max)
        client.post(INBOUND_URL, data=form_erika)

        owners = {message.user_id for message in inbound_messages(db_session)}
        assert owners == {max_mueller.id, erika_schmidt.id}
