"""
Test suite for users and accounts

Tests signup with its account, credential checks, password changes and the
cascading delete of a user's data.
"""

import pytest
from decimal import Decimal

from banking_demo.storage import InMemoryStorage
from banking_demo.audit import AuditTrail, AuditEventType
from banking_demo.ledger import AccountLedger
from banking_demo.investments import InvestmentRepository
from banking_demo.accounts import AccountManager
from banking_demo.users import DEFAULT_SETTINGS, UserManager
from banking_demo.errors import (
    AccountNotFoundError, AuthenticationError, UserNotFoundError, ValidationError
)


class UserTestBase:

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit = AuditTrail(self.storage)
        self.ledger = AccountLedger(self.storage, self.audit)
        self.investments = InvestmentRepository(self.storage)
        self.accounts = AccountManager(self.storage, self.audit, self.ledger, self.investments)
        self.users = UserManager(self.storage, self.audit, self.accounts)

    def signup(self, email="alice@example.com", password="secret123"):
        return self.users.create_user("Alice", "alice", email, password)


class TestAccountManager(UserTestBase):

    def test_account_number_format(self):
        account = self.accounts.create_account("USER001")
        assert account.account_number.startswith("AC-")
        assert len(account.account_number) == 9
        assert account.account_number[3:].isdigit()
        assert account.account_type == "Debit"

    def test_lookups(self):
        account = self.accounts.create_account("USER001")
        assert self.accounts.get_account(account.id).account_number == account.account_number
        assert self.accounts.get_account_by_number(account.account_number).id == account.id
        assert [a.id for a in self.accounts.get_user_accounts("USER001")] == [account.id]
        assert self.accounts.get_account("missing") is None

    def test_require_missing_account(self):
        with pytest.raises(AccountNotFoundError):
            self.accounts.require_account("missing")

    def test_summary_includes_recent_entries(self):
        account = self.accounts.create_account("USER001")
        for i in range(12):
            self.ledger.create_entry(account.id, "deposit", Decimal(i + 1))

        summary = self.accounts.get_summary(account.id)
        assert summary["account"].id == account.id
        assert len(summary["recent_entries"]) == 10


class TestUserManager(UserTestBase):

    def test_signup_creates_account(self):
        user, account = self.signup(email="Alice@Example.com")

        assert user.email == "alice@example.com"
        assert account.user_id == user.id
        assert account.account_number.startswith("AC-")
        assert user.password_hash and user.password_hash != "secret123"
        assert self.audit.get_events_by_type(AuditEventType.USER_CREATED)

    def test_duplicate_email_rejected(self):
        self.signup()
        with pytest.raises(ValidationError, match="Email already registered"):
            self.signup(email="ALICE@example.com")

    @pytest.mark.parametrize("name,username,email,password", [
        ("", "alice", "alice@example.com", "secret123"),
        ("Alice", " ", "alice@example.com", "secret123"),
        ("Alice", "alice", "not-an-email", "secret123"),
        ("Alice", "alice", "alice@example.com", "123"),
    ])
    def test_signup_validation(self, name, username, email, password):
        with pytest.raises(ValidationError):
            self.users.create_user(name, username, email, password)
        assert self.storage.count("users") == 0
        assert self.storage.count("accounts") == 0

    def test_authenticate(self):
        user, account = self.signup()
        authenticated, authenticated_account = self.users.authenticate("alice@example.com", "secret123")
        assert authenticated.id == user.id
        assert authenticated_account.id == account.id

    def test_authenticate_failures_look_identical(self):
        self.signup()
        with pytest.raises(AuthenticationError) as wrong_password:
            self.users.authenticate("alice@example.com", "wrong-password")
        with pytest.raises(AuthenticationError) as unknown_email:
            self.users.authenticate("bob@example.com", "secret123")

        assert wrong_password.value.message == unknown_email.value.message == "Invalid credentials"
        assert len(self.audit.get_events_by_type(AuditEventType.LOGIN_FAILED)) == 2

    def test_change_password(self):
        user, _ = self.signup()
        old_salt = user.password_salt

        updated = self.users.change_password(user.id, "secret123", "new-secret")
        assert updated.password_salt != old_salt

        with pytest.raises(AuthenticationError):
            self.users.authenticate("alice@example.com", "secret123")
        assert self.users.authenticate("alice@example.com", "new-secret")[0].id == user.id

    def test_change_password_requires_current(self):
        user, _ = self.signup()
        with pytest.raises(AuthenticationError, match="Current password is incorrect"):
            self.users.change_password(user.id, "wrong", "new-secret")

    def test_change_password_must_differ(self):
        user, _ = self.signup()
        with pytest.raises(ValidationError):
            self.users.change_password(user.id, "secret123", "secret123")

    def test_delete_user_cascades(self):
        user, account = self.signup()
        _, other_account = self.signup(email="bob@example.com")
        self.ledger.create_entry(account.id, "deposit", Decimal("10"))
        kept = self.ledger.create_entry(other_account.id, "deposit", Decimal("20"))

        self.users.delete_user(user.id)

        assert self.users.get_user(user.id) is None
        assert self.accounts.get_account(account.id) is None
        assert self.ledger.get_recent_entries(account.id) == []
        assert self.ledger.get_entry(kept.id, other_account.id)
        assert self.audit.verify_integrity()["valid"]

    def test_delete_missing_user(self):
        with pytest.raises(UserNotFoundError):
            self.users.delete_user("missing")


class TestUserProfile(UserTestBase):

    def test_update_profile(self):
        user, _ = self.signup()
        updated = self.users.update_user(user.id, {"name": " Alice Silva ", "email": "Alice.Silva@Example.com"})

        assert updated.name == "Alice Silva"
        assert updated.email == "alice.silva@example.com"
        assert updated.username == "alice"
        assert self.users.authenticate("alice.silva@example.com", "secret123")[0].id == user.id
        event, = self.audit.get_events_by_type(AuditEventType.USER_UPDATED)
        assert event.metadata["changed_fields"] == ["email", "name"]

    def test_update_keeps_own_email(self):
        user, _ = self.signup()
        updated = self.users.update_user(user.id, {"email": "ALICE@example.com", "username": "alice2"})
        assert updated.email == "alice@example.com"
        assert updated.username == "alice2"

    def test_update_email_taken(self):
        user, _ = self.signup()
        self.signup(email="bob@example.com")
        with pytest.raises(ValidationError, match="Email already registered"):
            self.users.update_user(user.id, {"email": "Bob@example.com"})
        assert self.users.get_user(user.id).email == "alice@example.com"

    @pytest.mark.parametrize("changes,message", [
        ({}, "No fields to update"),
        ({"password": "hijack123"}, "password"),
        ({"settings": {}}, "settings"),
        ({"name": " "}, "Name is required"),
        ({"username": None}, "Username is required"),
        ({"email": "not-an-email"}, "A valid email is required"),
    ])
    def test_update_validation(self, changes, message):
        user, _ = self.signup()
        with pytest.raises(ValidationError, match=message):
            self.users.update_user(user.id, changes)

    def test_update_missing_user(self):
        with pytest.raises(UserNotFoundError):
            self.users.update_user("missing", {"name": "Nobody"})

    def test_signup_stores_default_settings(self):
        user, _ = self.signup()
        assert user.settings == DEFAULT_SETTINGS
        assert self.users.get_settings(user.id) == DEFAULT_SETTINGS

    def test_update_settings_merges(self):
        user, _ = self.signup()
        self.users.update_settings(user.id, {"notifications": False, "theme": "dark"})
        updated = self.users.update_settings(user.id, {"language": "en-US"})

        assert updated.settings["notifications"] is False
        assert updated.settings["theme"] == "dark"
        assert updated.settings["language"] == "en-US"
        assert updated.settings["currency"] == "BRL"
        assert self.users.get_settings(user.id) == updated.settings
        assert len(self.audit.get_events_by_type(AuditEventType.USER_SETTINGS_UPDATED)) == 2

    @pytest.mark.parametrize("settings,message", [
        ({}, "Settings are required"),
        ({"font_size": "large"}, "Unknown settings: font_size"),
        ({"sms_alerts": "yes"}, "must be true or false"),
        ({"currency": ""}, "must be a non-empty string"),
    ])
    def test_update_settings_validation(self, settings, message):
        user, _ = self.signup()
        with pytest.raises(ValidationError, match=message):
            self.users.update_settings(user.id, settings)
        assert self.users.get_settings(user.id) == DEFAULT_SETTINGS
