"""Tests for the register / login / logout flows."""

import threading
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from storefront import flows
from storefront.db.models import AuditLog, User
from storefront.directory import delete_user, update_user
from storefront.errors import AccountInactive, DuplicateEmail, InvalidCredentials
from storefront.sessions import get_session

from conftest import TEST_PASSWORD


class TestRegister:
    def test_register_creates_customer(self, db_session):
        user = flows.register(db_session, "New", "User", "new@example.com", "Password123!")
        assert user.id is not None
        assert user.role == "customer"
        assert user.account_status == "active"
        assert user.is_email_verified is False
        assert user.password_hash != "Password123!"

    def test_register_duplicate_email_raises(self, db_session, test_user):
        with pytest.raises(DuplicateEmail, match="already exists"):
            flows.register(db_session, "Dup", "User", "test@example.com", "Pass123!")

    def test_register_is_audited(self, db_session):
        user = flows.register(db_session, "New", "User", "new@example.com", "Password123!")
        db_session.commit()
        actions = db_session.execute(
            select(AuditLog.action_type).where(AuditLog.user_id == user.id)
        ).scalars().all()
        assert actions == ["user.register"]


class TestLogin:
    def test_login_with_registered_credentials(self, db_session, test_user):
        record = flows.login(db_session, "test@example.com", TEST_PASSWORD)
        assert len(record.session_token) == 64
        assert record.user_id == test_user.id
        assert record.last_activity is not None

    def test_wrong_password(self, db_session, test_user):
        with pytest.raises(InvalidCredentials):
            flows.login(db_session, "test@example.com", "WrongPassword")

    def test_unknown_email_is_indistinguishable(self, db_session, test_user):
        with pytest.raises(InvalidCredentials) as unknown:
            flows.login(db_session, "nobody@x.com", TEST_PASSWORD)
        with pytest.raises(InvalidCredentials) as wrong:
            flows.login(db_session, "test@example.com", "WrongPassword")
        assert str(unknown.value) == str(wrong.value)

    @pytest.mark.parametrize("status", ["suspended", "disabled"])
    def test_inactive_account_with_correct_password(self, db_session, test_user, status):
        update_user(db_session, test_user.id, account_status=status)
        db_session.commit()
        with pytest.raises(AccountInactive):
            flows.login(db_session, "test@example.com", TEST_PASSWORD)

    def test_inactive_account_with_wrong_password(self, db_session, test_user):
        update_user(db_session, test_user.id, account_status="suspended")
        db_session.commit()
        with pytest.raises(InvalidCredentials):
            flows.login(db_session, "test@example.com", "WrongPassword")

    def test_snapshot_ignores_later_edits(self, db_session, test_user):
        record = flows.login(db_session, "test@example.com", TEST_PASSWORD)
        db_session.commit()
        update_user(db_session, test_user.id, first_name="Changed", email="changed@example.com")
        db_session.commit()
        stored = get_session(db_session, record.session_token)
        assert stored.first_name == "Test"
        assert stored.email == "test@example.com"

    def test_deleting_user_keeps_live_session(self, db_session, test_user):
        record = flows.login(db_session, "test@example.com", TEST_PASSWORD)
        db_session.commit()
        delete_user(db_session, test_user.id)
        db_session.commit()
        assert get_session(db_session, record.session_token) is not None


class TestIdleSweepOnLogin:
    T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
    TIMEOUT = timedelta(minutes=15)

    def test_login_removes_abandoned_sessions(self, db_session, test_user):
        abandoned = flows.login(db_session, "test@example.com", TEST_PASSWORD, now=self.T0)
        db_session.commit()

        fresh = flows.login(
            db_session,
            "test@example.com",
            TEST_PASSWORD,
            now=self.T0 + timedelta(minutes=20),
            purge_idle_after=self.TIMEOUT,
        )
        db_session.commit()

        assert get_session(db_session, abandoned.session_token) is None
        assert get_session(db_session, fresh.session_token) is not None

    def test_sessions_inside_the_window_are_kept(self, db_session, test_user):
        earlier = flows.login(db_session, "test@example.com", TEST_PASSWORD, now=self.T0)
        db_session.commit()

        flows.login(
            db_session,
            "test@example.com",
            TEST_PASSWORD,
            now=self.T0 + timedelta(minutes=15),
            purge_idle_after=self.TIMEOUT,
        )
        db_session.commit()

        assert get_session(db_session, earlier.session_token) is not None

    def test_no_sweep_without_a_window(self, db_session, test_user):
        old = flows.login(db_session, "test@example.com", TEST_PASSWORD, now=self.T0)
        db_session.commit()
        flows.login(
            db_session, "test@example.com", TEST_PASSWORD, now=self.T0 + timedelta(hours=2)
        )
        db_session.commit()
        assert get_session(db_session, old.session_token) is not None

    def test_failed_login_does_not_sweep(self, db_session, test_user):
        old = flows.login(db_session, "test@example.com", TEST_PASSWORD, now=self.T0)
        db_session.commit()
        with pytest.raises(InvalidCredentials):
            flows.login(
                db_session,
                "test@example.com",
                "WrongPassword",
                now=self.T0 + timedelta(hours=1),
                purge_idle_after=self.TIMEOUT,
            )
        assert get_session(db_session, old.session_token) is not None


class TestDummyHash:
    def test_prime_fills_the_cache(self):
        flows._dummy_hash.cache_clear()
        flows.prime_dummy_hash()
        assert flows._dummy_hash.cache_info().currsize == 1


class TestLogout:
    def test_logout_twice(self, db_session, test_user):
        record = flows.login(db_session, "test@example.com", TEST_PASSWORD)
        db_session.commit()
        flows.logout(db_session, record.session_token)
        db_session.commit()
        flows.logout(db_session, record.session_token)
        db_session.commit()
        assert get_session(db_session, record.session_token) is None

    def test_logout_without_token(self, db_session):
        flows.logout(db_session, None)


class TestConcurrentRegistration:
    def test_exactly_one_registration_wins(self, file_session_factory):
        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def attempt(password):
            db = file_session_factory()
            barrier.wait()
            try:
                flows.register(db, "A", "X", "a@x.com", password)
                db.commit()
                outcome = "ok"
            except DuplicateEmail:
                db.rollback()
                outcome = "duplicate"
            finally:
                db.close()
            with lock:
                outcomes.append(outcome)

        threads = [
            threading.Thread(target=attempt, args=("pw1",)),
            threading.Thread(target=attempt, args=("pw2",)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["duplicate", "ok"]
        with file_session_factory() as db:
            count = db.execute(
                select(func.count()).select_from(User).where(User.email == "a@x.com")
            ).scalar_one()
        assert count == 1

    def test_unique_index_catches_a_passed_precheck(self, db_session, test_user, monkeypatch):
        from storefront.errors import NotFound

        def never_found(db, email):
            raise NotFound()

        monkeypatch.setattr(flows, "find_by_email", never_found)
        with pytest.raises(DuplicateEmail):
            flows.register(db_session, "Dup", "User", "test@example.com", "Pass123!")
