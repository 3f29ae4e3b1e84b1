"""Integration tests for bare alias resolution

Each lookup source is exercised on its own, followed by the fallthrough
and ambiguity cases.
"""

import pytest

from domain.inbound_email.alias_directory import AliasDirectory
from domain.inbound_email.errors import AliasNotFoundError
from models import UserEmailAlias
from conftest import TEST_DOMAIN, make_application, make_user


class TestAliasSources:

    def test_active_alias_registry(self, db_session, max_mueller):
        assert AliasDirectory(db_session).resolve_user_id(f"max.mueller@{TEST_DOMAIN}") == max_mueller.id

    def test_lookup_is_case_insensitive(self, db_session, max_mueller):
        assert AliasDirectory(db_session).resolve_user_id(f" Max.Mueller@Relay.Test ") == max_mueller.id

    def test_profile_alias_field(self, db_session):
        user = make_user(db_session, email="anna@example.org", alias_email=f"anna.berg@{TEST_DOMAIN}")

        assert AliasDirectory(db_session).resolve_user_id(f"anna.berg@{TEST_DOMAIN}") == user.id

    def test_personal_email_local_part(self, db_session):
        user = make_user(db_session, email="login@example.org", profile_email="anna.berg@gmail.com")

        assert AliasDirectory(db_session).resolve_user_id(f"anna.berg@{TEST_DOMAIN}") == user.id

    def test_inactive_alias(self, db_session):
        user = make_user(db_session, email="anna@example.org")
        db_session.add(UserEmailAlias(user_id=user.id, full_address=f"anna.berg@{TEST_DOMAIN}", is_active=False))
        db_session.commit()

        assert AliasDirectory(db_session).resolve_user_id(f"anna.berg@{TEST_DOMAIN}") == user.id

    def test_application_reply_to(self, db_session):
        user = make_user(db_session, email="anna@example.org")
        make_application(db_session, user, "hr@klinikum-x.de", reply_to=f"anna.berg@{TEST_DOMAIN}")

        assert AliasDirectory(db_session).resolve_user_id(f"anna.berg@{TEST_DOMAIN}") == user.id


class TestAliasFallthrough:

    def test_unknown_alias_raises(self, db_session, max_mueller):
        with pytest.raises(AliasNotFoundError):
            AliasDirectory(db_session).resolve_user_id(f"nobody@{TEST_DOMAIN}")

    def test_active_alias_wins_over_later_sources(self, db_session, max_mueller):
        other = make_user(db_session, email="other@example.org", profile_email="max.mueller@web.de")

        resolved = AliasDirectory(db_session).resolve_user_id(f"max.mueller@{TEST_DOMAIN}")

        assert resolved == max_mueller.id
        assert resolved != other.id

    def test_shared_local_part_is_ambiguous(self, db_session):
        make_user(db_session, email="a@example.org", profile_email="anna.berg@gmail.com")
        make_user(db_session, email="b@example.org", profile_email="anna.berg@web.de")

        with pytest.raises(AliasNotFoundError):
            AliasDirectory(db_session).resolve_user_id(f"anna.berg@{TEST_DOMAIN}")

    def test_like_wildcards_in_local_part_are_literal(self, db_session):
        make_user(db_session, email="a@example.org", profile_email="annaxberg@gmail.com")

        with pytest.raises(AliasNotFoundError):
            AliasDirectory(db_session).resolve_user_id(f"anna_berg@{TEST_DOMAIN}")

    def test_inactive_alias_owned_by_two_users_is_ambiguous(self, db_session):
        first = make_user(db_session, email="a@example.org")
        second = make_user(db_session, email="b@example.org")
        db_session.add_all([
            UserEmailAlias(user_id=first.id, full_address=f"anna.berg@{TEST_DOMAIN}", is_active=False),
            UserEmailAlias(user_id=second.id, full_address=f"anna.berg@{TEST_DOMAIN}", is_active=False),
        ])
        db_session.commit()

        with pytest.raises(AliasNotFoundError):
            AliasDirectory(db_session).resolve_user_id(f"anna.berg@{TEST_DOMAIN}")
