"""
Tests for SubmissionRepository.

Test classes:
- TestApprove: approval clears revocation and merges mirror fields
- TestRevoke: first revocation wins, multi-row subscription revoke
- TestEmailLookups: latest-row-wins and single-row blast radius
- TestMirrorPatch: unset fields are left alone
- TestStoreErrors: SQLAlchemy failures surface as SubmissionStoreError
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from medicaidready.models.base import ensure_utc
from medicaidready.models.submission import SubmissionStatus
from medicaidready.repositories.submission_repository import (
    MirrorPatch,
    SubmissionRepository,
    SubmissionStoreError,
)


def _reload(repository, submission_id):
    repository.db.expire_all()
    return repository.find_by_id(submission_id)


class TestApprove:
    def test_approve_clears_revocation(self, make_submission, submission_repository):
        submission = make_submission(
            status=SubmissionStatus.REVOKED,
            revoked_at=datetime.now(timezone.utc),
            revoked_reason="subscription_past_due",
        )

        rows = submission_repository.approve(submission.id)

        assert rows == 1
        reloaded = _reload(submission_repository, submission.id)
        assert reloaded.status == SubmissionStatus.APPROVED
        assert reloaded.access_revoked_at is None
        assert reloaded.access_revoked_reason is None

    def test_approve_merges_mirror_patch(self, make_submission, submission_repository):
        submission = make_submission(status=SubmissionStatus.PENDING, subscription_status=None)
        period_end = datetime(2026, 6, 1, tzinfo=timezone.utc)

        submission_repository.approve(
            submission.id,
            MirrorPatch(
                stripe_customer_id="cus_123",
                stripe_subscription_id="sub_123",
                stripe_subscription_status="active",
                stripe_current_period_end=period_end,
            ),
        )

        reloaded = _reload(submission_repository, submission.id)
        assert reloaded.stripe_customer_id == "cus_123"
        assert reloaded.stripe_subscription_id == "sub_123"
        assert reloaded.stripe_subscription_status == "active"
        assert ensure_utc(reloaded.stripe_current_period_end) == period_end

    def test_approve_unknown_id_updates_nothing(self, submission_repository):
        assert submission_repository.approve("does-not-exist") == 0

    def test_approve_by_subscription_id(self, make_submission, submission_repository):
        first = make_submission(status=SubmissionStatus.REVOKED, subscription_id="sub_multi",
                                revoked_at=datetime.now(timezone.utc))
        second = make_submission(status=SubmissionStatus.PENDING, subscription_id="sub_multi")
        other = make_submission(status=SubmissionStatus.PENDING, subscription_id="sub_other")

        rows = submission_repository.approve_by_subscription_id("sub_multi")

        assert rows == 2
        assert _reload(submission_repository, first.id).status == SubmissionStatus.APPROVED
        assert _reload(submission_repository, second.id).status == SubmissionStatus.APPROVED
        assert _reload(submission_repository, other.id).status == SubmissionStatus.PENDING


class TestRevoke:
    def test_revoke_sets_status_timestamp_and_reason(self, make_submission, submission_repository):
        submission = make_submission()

        rows = submission_repository.revoke_by_id(submission.id, "subscription_deleted")

        assert rows == 1
        reloaded = _reload(submission_repository, submission.id)
        assert reloaded.status == SubmissionStatus.REVOKED
        assert reloaded.access_revoked_at is not None
        assert reloaded.access_revoked_reason == "subscription_deleted"

    def test_second_revoke_keeps_first_timestamp_and_reason(
        self, make_submission, submission_repository
    ):
        first_revoked_at = datetime.now(timezone.utc) - timedelta(days=3)
        submission = make_submission(
            status=SubmissionStatus.REVOKED,
            revoked_at=first_revoked_at,
            revoked_reason="period_end_elapsed",
        )

        submission_repository.revoke_by_id(submission.id, "invoice_payment_failed")

        reloaded = _reload(submission_repository, submission.id)
        assert ensure_utc(reloaded.access_revoked_at) == first_revoked_at
        assert reloaded.access_revoked_reason == "period_end_elapsed"

    def test_repeat_revoke_still_mirrors_status(self, make_submission, submission_repository):
        submission = make_submission(subscription_id="sub_1")
        submission_repository.revoke_by_subscription_id(
            "sub_1", "subscription_past_due", MirrorPatch(stripe_subscription_status="past_due")
        )
        submission_repository.revoke_by_subscription_id(
            "sub_1", "subscription_deleted", MirrorPatch(stripe_subscription_status="canceled")
        )

        reloaded = _reload(submission_repository, submission.id)
        assert reloaded.access_revoked_reason == "subscription_past_due"
        assert reloaded.stripe_subscription_status == "canceled"

    def test_revoke_by_subscription_id_hits_every_row(self, make_submission, submission_repository):
        rows_for_sub = [make_submission(subscription_id="sub_dupe") for _ in range(3)]
        untouched = make_submission(subscription_id="sub_other")

        rows = submission_repository.revoke_by_subscription_id("sub_dupe", "subscription_deleted")

        assert rows == 3
        for submission in rows_for_sub:
            assert _reload(submission_repository, submission.id).access_revoked_at is not None
        assert _reload(submission_repository, untouched.id).access_revoked_at is None


class TestEmailLookups:
    def test_find_latest_by_email_normalizes_and_orders(self, make_submission, submission_repository):
        now = datetime.now(timezone.utc)
        make_submission(email="dup@example.com", created_at=now - timedelta(days=2))
        newest = make_submission(email="dup@example.com", created_at=now)
        make_submission(email="dup@example.com", created_at=now - timedelta(days=1))

        found = submission_repository.find_latest_by_email("  DUP@Example.com ")

        assert found.id == newest.id

    def test_find_latest_by_blank_email(self, submission_repository):
        assert submission_repository.find_latest_by_email("   ") is None

    def test_revoke_latest_by_email_only_touches_newest(self, make_submission, submission_repository):
        now = datetime.now(timezone.utc)
        older = make_submission(email="pay@example.com", created_at=now - timedelta(days=5))
        newest = make_submission(email="pay@example.com", created_at=now)

        revoked_id = submission_repository.revoke_latest_by_email(
            "pay@example.com", "invoice_payment_failed_no_subscription_id"
        )

        assert revoked_id == newest.id
        assert _reload(submission_repository, newest.id).access_revoked_at is not None
        assert _reload(submission_repository, older.id).access_revoked_at is None

    def test_approve_latest_by_email(self, make_submission, submission_repository):
        now = datetime.now(timezone.utc)
        make_submission(email="renew@example.com", status=SubmissionStatus.PENDING,
                        created_at=now - timedelta(hours=1))
        newest = make_submission(email="renew@example.com", status=SubmissionStatus.PENDING,
                                 created_at=now)

        approved_id = submission_repository.approve_latest_by_email(
            "renew@example.com", MirrorPatch(stripe_subscription_status="active")
        )

        assert approved_id == newest.id
        assert _reload(submission_repository, newest.id).status == SubmissionStatus.APPROVED

    def test_email_miss_returns_none(self, submission_repository):
        assert submission_repository.approve_latest_by_email("nobody@example.com") is None
        assert submission_repository.revoke_latest_by_email("nobody@example.com", "x") is None


class TestMirrorPatch:
    def test_only_set_fields_are_written(self):
        assert MirrorPatch(stripe_subscription_status="active").to_values() == {
            "stripe_subscription_status": "active"
        }

    def test_explicit_none_is_kept(self):
        assert MirrorPatch(stripe_current_period_end=None).to_values() == {
            "stripe_current_period_end": None
        }

    def test_unset_fields_leave_columns_alone(self, make_submission, submission_repository):
        submission = make_submission(subscription_id="sub_keep")
        submission_repository.approve(submission.id, MirrorPatch(stripe_customer_id="cus_9"))

        reloaded = _reload(submission_repository, submission.id)
        assert reloaded.stripe_subscription_id == "sub_keep"
        assert reloaded.stripe_customer_id == "cus_9"

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValueError):
            MirrorPatch(status="approved")


class TestCreate:
    def test_create_inserts_pending_row_with_normalized_email(self, submission_repository):
        submission = submission_repository.create(email="  New@Example.COM ", name="New")

        assert submission.status == SubmissionStatus.PENDING
        assert submission.email == "new@example.com"
        assert submission.access_revoked_at is None


class TestStoreErrors:
    def _broken_repository(self):
        session = MagicMock()
        session.query.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        return SubmissionRepository(session), session

    def test_lookup_failure_is_distinct_from_not_found(self):
        repository, _ = self._broken_repository()
        with pytest.raises(SubmissionStoreError) as exc_info:
            repository.find_by_id("abc")
        assert exc_info.value.operation == "find_by_id"

    def test_write_failure_rolls_back(self):
        repository, session = self._broken_repository()
        with pytest.raises(SubmissionStoreError) as exc_info:
            repository.revoke_by_id("abc", "period_end_elapsed")
        assert exc_info.value.operation == "revoke"
        session.rollback.assert_called_once()
        session.commit.assert_not_called()
