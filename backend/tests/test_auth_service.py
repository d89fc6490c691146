"""
Account lifecycle tests.

Verifies:
- Signup creates an unverified store owner and emails a verification link
- A failed email leaves the account but no usable token
- Password reset tokens are single use, expire and revoke sessions
- Login failures share one message
"""

from datetime import timedelta

import pytest

from storefront.errors import AuthenticationError, ConflictError, DependencyError, ValidationError
from storefront.extensions import db
from storefront.models import ROLE_STORE_OWNER, SessionToken, User
from storefront.services import auth_service, session_service, user_service
from storefront.time_utils import utcnow

TEST_PASSWORD = "Password123!"  # make_user default

SIGNUP = {
    "name": "New Owner",
    "email": "  New.Owner@Example.com ",
    "phone": "0722222222",
    "password": "s3cret-pass",
    "password_confirm": "s3cret-pass",
}


# =============================================================================
# SIGNUP AND VERIFICATION
# =============================================================================


class TestSignup:

    def test_creates_unverified_owner_and_sends_link(self, db_session, settings, notifier):
        user = auth_service.signup(dict(SIGNUP), settings, notifier)

        assert user.email == "new.owner@example.com"
        assert user.role == ROLE_STORE_OWNER
        assert user.email_verified is False
        assert user.password_hash != SIGNUP["password"]
        assert auth_service.verify_password(SIGNUP["password"], user.password_hash)

        assert notifier.sent[-1]["to"] == "new.owner@example.com"
        assert "http://testserver/api/v1/users/verify-email/" in notifier.sent[-1]["body"]

    def test_token_stored_hashed(self, db_session, settings, notifier):
        user = auth_service.signup(dict(SIGNUP), settings, notifier)
        raw = notifier.last_token("verify-email")
        assert user.email_verification_token_hash == session_service.hash_token(raw)
        assert user.email_verification_token_hash != raw

    def test_verify_email(self, db_session, settings, notifier):
        auth_service.signup(dict(SIGNUP), settings, notifier)
        user = auth_service.verify_email(notifier.last_token("verify-email"))

        assert user.email_verified is True
        assert user.email_verification_token_hash is None

    def test_verification_token_single_use(self, db_session, settings, notifier):
        auth_service.signup(dict(SIGNUP), settings, notifier)
        raw = notifier.last_token("verify-email")
        auth_service.verify_email(raw)
        with pytest.raises(ValidationError):
            auth_service.verify_email(raw)

    def test_expired_verification_token(self, db_session, settings, notifier):
        user = auth_service.signup(dict(SIGNUP), settings, notifier)
        user.email_verification_expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()
        with pytest.raises(ValidationError):
            auth_service.verify_email(notifier.last_token("verify-email"))

    def test_delivery_failure_keeps_account_without_token(self, db_session, settings, notifier):
        notifier.fail = True
        with pytest.raises(DependencyError):
            auth_service.signup(dict(SIGNUP), settings, notifier)

        user = db.session.query(User).filter_by(email="new.owner@example.com").one()
        assert user.email_verification_token_hash is None
        assert user.email_verification_expires_at is None

        notifier.fail = False
        auth_service.resend_verification(user, settings, notifier)
        assert auth_service.verify_email(notifier.last_token("verify-email")).email_verified

    def test_resend_for_verified_account_rejected(self, owner, settings, notifier):
        with pytest.raises(ValidationError):
            auth_service.resend_verification(owner, settings, notifier)

    def test_duplicate_email(self, owner, settings, notifier):
        with pytest.raises(ConflictError):
            auth_service.signup(dict(SIGNUP, email="OWNER@example.com"), settings, notifier)

    @pytest.mark.parametrize("patch", [
        {"password_confirm": "different-pass"},
        {"password": "short", "password_confirm": "short"},
        {"email": "not-an-email"},
        {"name": "  "},
        {"phone": ""},
    ])
    def test_invalid_signup(self, db_session, settings, notifier, patch):
        with pytest.raises(ValidationError):
            auth_service.signup(dict(SIGNUP, **patch), settings, notifier)
        assert db.session.query(User).count() == 0
        assert notifier.sent == []


# =============================================================================
# LOGIN
# =============================================================================


class TestAuthenticate:

    def test_success_records_login(self, owner):
        user = auth_service.authenticate(" OWNER@example.com", TEST_PASSWORD)
        assert user.id == owner.id
        assert user.last_login_at is not None

    @pytest.mark.parametrize("email, password", [
        ("owner@example.com", "wrong-password"),
        ("nobody@example.com", TEST_PASSWORD),
    ])
    def test_failure_message_is_uniform(self, owner, email, password):
        with pytest.raises(AuthenticationError) as exc:
            auth_service.authenticate(email, password)
        assert exc.value.message == "Incorrect email or password"

    def test_inactive_user_cannot_login(self, make_user):
        make_user("gone@example.com", active=False)
        with pytest.raises(AuthenticationError):
            auth_service.authenticate("gone@example.com", TEST_PASSWORD)

    def test_missing_fields(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.authenticate("owner@example.com", "")


# =============================================================================
# PASSWORDS
# =============================================================================


def active_sessions(user_id):
    return db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).count()


class TestPasswordReset:

    def test_full_flow(self, owner, settings, notifier):
        session_service.create_session(owner, settings)
        auth_service.request_password_reset("owner@example.com", settings, notifier)
        raw = notifier.last_token("reset-password")

        user = auth_service.reset_password(raw, "brand-new-pass", "brand-new-pass", settings)

        assert auth_service.verify_password("brand-new-pass", user.password_hash)
        assert user.password_reset_token_hash is None
        assert active_sessions(owner.id) == 0
        with pytest.raises(ValidationError):
            auth_service.reset_password(raw, "another-pass", "another-pass", settings)

    @pytest.mark.parametrize("email", ["nobody@example.com", "not-an-email", None])
    def test_unknown_email_is_silent(self, owner, settings, notifier, email):
        auth_service.request_password_reset(email, settings, notifier)
        assert notifier.sent == []

    def test_expired_token(self, owner, settings, notifier):
        auth_service.request_password_reset("owner@example.com", settings, notifier)
        owner.password_reset_expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()
        with pytest.raises(ValidationError):
            auth_service.reset_password(
                notifier.last_token("reset-password"), "brand-new-pass", "brand-new-pass", settings
            )

    def test_mismatched_confirmation_keeps_token(self, owner, settings, notifier):
        auth_service.request_password_reset("owner@example.com", settings, notifier)
        raw = notifier.last_token("reset-password")
        with pytest.raises(ValidationError):
            auth_service.reset_password(raw, "brand-new-pass", "other-pass", settings)
        assert auth_service.reset_password(raw, "brand-new-pass", "brand-new-pass", settings).id == owner.id

    def test_delivery_failure_clears_token(self, owner, settings, notifier):
        notifier.fail = True
        with pytest.raises(DependencyError):
            auth_service.request_password_reset("owner@example.com", settings, notifier)
        db.session.refresh(owner)
        assert owner.password_reset_token_hash is None


class TestUpdatePassword:

    def test_change_revokes_sessions(self, owner, settings):
        session_service.create_session(owner, settings)
        session_service.create_session(owner, settings)

        auth_service.update_password(
            owner,
            {"password_current": TEST_PASSWORD, "password": "changed-pass", "password_confirm": "changed-pass"},
            settings,
        )

        assert active_sessions(owner.id) == 0
        assert auth_service.authenticate("owner@example.com", "changed-pass").id == owner.id

    def test_wrong_current_password(self, owner, settings):
        with pytest.raises(AuthenticationError):
            auth_service.update_password(
                owner,
                {"password_current": "nope-nope", "password": "changed-pass", "password_confirm": "changed-pass"},
                settings,
            )

    def test_same_password_rejected(self, owner, settings):
        with pytest.raises(ValidationError):
            auth_service.update_password(
                owner,
                {"password_current": TEST_PASSWORD, "password": TEST_PASSWORD, "password_confirm": TEST_PASSWORD},
                settings,
            )

    def test_update_me_refuses_password_fields(self, owner):
        with pytest.raises(ValidationError):
            user_service.update_me(owner, {"password": "changed-pass"})


class TestSessions:

    def test_token_round_trip_and_logout(self, owner, settings):
        _, token = session_service.create_session(owner, settings)
        assert session_service.validate_session(token, settings).user.id == owner.id

        assert session_service.revoke_session(token) is True
        assert session_service.validate_session(token, settings) is None

    def test_deactivated_user_session_rejected(self, owner, settings):
        _, token = session_service.create_session(owner, settings)
        owner.is_active = False
        db.session.commit()
        assert session_service.validate_session(token, settings) is None

    def test_admin_deactivation_rules(self, owner, admin):
        assert user_service.set_user_active(owner.id, False, acting_user_id=admin.id).is_active is False
        with pytest.raises(ValidationError):
            user_service.set_user_active(admin.id, False, acting_user_id=admin.id)
