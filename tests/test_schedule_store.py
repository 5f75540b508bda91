"""Tests for the scheduled post lifecycle."""
from datetime import datetime, timedelta

import pytest
from pytz import UTC, timezone

from conftest import TEAM
from contentforge.datetime_utils import as_utc, utcnow
from contentforge.errors import FailureReason, InvalidRequestError, InvalidStateError, NotFoundError
from contentforge.models.scheduled_post import PostStatus

WHEN = UTC.localize(datetime(2030, 5, 1, 9, 0))


@pytest.fixture
def scheduled(schedule_store, make_account, make_variant):
    account = make_account("twitter")
    variant = make_variant("twitter", text="Snapshot me", image_url=None)
    return schedule_store.create(TEAM, variant, account, WHEN)


class TestCreate:
    def test_with_datetime_is_scheduled_and_snapshots_content(self, scheduled):
        assert scheduled.post_status == PostStatus.SCHEDULED
        assert scheduled.content == "Snapshot me"
        assert scheduled.platform == "twitter"
        assert as_utc(scheduled.scheduled_at) == WHEN
        assert scheduled.attempt_count == 0

    def test_without_datetime_is_draft(self, schedule_store, make_account, make_variant):
        post = schedule_store.create(TEAM, make_variant("linkedin"), make_account("linkedin"))

        assert post.post_status == PostStatus.DRAFT
        assert post.scheduled_at is None

    def test_platform_mismatch_is_rejected(self, schedule_store, make_account, make_variant):
        with pytest.raises(InvalidRequestError):
            schedule_store.create(TEAM, make_variant("twitter"), make_account("linkedin"), WHEN)

    def test_variant_can_only_be_scheduled_once(self, schedule_store, make_account, make_variant):
        account = make_account("twitter")
        variant = make_variant("twitter")
        schedule_store.create(TEAM, variant, account, WHEN)

        with pytest.raises(InvalidStateError):
            schedule_store.create(TEAM, variant, account, WHEN)

    def test_local_time_is_stored_as_utc(self, schedule_store, make_account, make_variant):
        kolkata = timezone("Asia/Kolkata").localize(datetime(2030, 5, 1, 14, 30))
        post = schedule_store.create(TEAM, make_variant("twitter"), make_account("twitter"), kolkata)

        assert as_utc(schedule_store.get(post.id).scheduled_at) == WHEN


class TestReschedule:
    def test_moves_scheduled_post_without_changing_status(self, schedule_store, scheduled):
        later = WHEN + timedelta(days=1)

        moved = schedule_store.reschedule(scheduled.id, later)

        assert moved.post_status == PostStatus.SCHEDULED
        assert as_utc(schedule_store.get(scheduled.id).scheduled_at) == later

    def test_draft_stays_draft(self, schedule_store, make_account, make_variant):
        draft = schedule_store.create(TEAM, make_variant("twitter"), make_account("twitter"))

        moved = schedule_store.reschedule(draft.id, WHEN)

        assert moved.post_status == PostStatus.DRAFT
        assert as_utc(moved.scheduled_at) == WHEN

    def test_same_datetime_twice_is_idempotent(self, schedule_store, scheduled):
        later = WHEN + timedelta(hours=3)

        schedule_store.reschedule(scheduled.id, later)
        after_first = schedule_store.get(scheduled.id)
        schedule_store.reschedule(scheduled.id, later)
        after_second = schedule_store.get(scheduled.id)

        assert as_utc(after_second.scheduled_at) == as_utc(after_first.scheduled_at) == later
        assert after_second.status == after_first.status
        assert after_second.updated_at == after_first.updated_at

    def test_published_post_cannot_be_rescheduled(self, schedule_store, scheduled):
        schedule_store.mark_published(scheduled.id, "remote-1", 1, utcnow())

        with pytest.raises(InvalidStateError):
            schedule_store.reschedule(scheduled.id, WHEN + timedelta(days=2))

        stored = schedule_store.get(scheduled.id)
        assert as_utc(stored.scheduled_at) == WHEN
        assert stored.post_status == PostStatus.PUBLISHED

    def test_failed_post_cannot_be_rescheduled(self, schedule_store, scheduled):
        schedule_store.mark_failed(scheduled.id, FailureReason.PUBLISH_REJECTED, "Duplicate", 1, utcnow())

        with pytest.raises(InvalidStateError):
            schedule_store.reschedule(scheduled.id, WHEN + timedelta(days=2))

        assert as_utc(schedule_store.get(scheduled.id).scheduled_at) == WHEN

    def test_unknown_post(self, schedule_store):
        with pytest.raises(NotFoundError):
            schedule_store.reschedule(999, WHEN)

    def test_other_team_cannot_see_post(self, schedule_store, scheduled):
        with pytest.raises(NotFoundError):
            schedule_store.reschedule(scheduled.id, WHEN, team_id="other-team")


class TestStatusChanges:
    def test_schedule_draft(self, schedule_store, make_account, make_variant):
        draft = schedule_store.create(TEAM, make_variant("twitter"), make_account("twitter"))

        with pytest.raises(InvalidRequestError):
            schedule_store.schedule_draft(draft.id)

        scheduled = schedule_store.schedule_draft(draft.id, WHEN)
        assert scheduled.post_status == PostStatus.SCHEDULED

    def test_cancel(self, schedule_store, scheduled):
        cancelled = schedule_store.cancel(scheduled.id)

        assert cancelled.post_status == PostStatus.CANCELLED
        with pytest.raises(InvalidStateError):
            schedule_store.reschedule(scheduled.id, WHEN)

    def test_cannot_cancel_published(self, schedule_store, scheduled):
        schedule_store.mark_published(scheduled.id, "remote-1", 1, utcnow())

        with pytest.raises(InvalidStateError) as exc_info:
            schedule_store.cancel(scheduled.id)
        assert exc_info.value.current == PostStatus.PUBLISHED.value
        assert exc_info.value.requested == PostStatus.CANCELLED.value

    def test_retry_clears_failure(self, schedule_store, scheduled):
        schedule_store.mark_failed(scheduled.id, FailureReason.PUBLISH_EXHAUSTED, "503", 3, utcnow())

        retried = schedule_store.retry(scheduled.id)

        assert retried.post_status == PostStatus.SCHEDULED
        assert retried.failure_reason is None
        assert retried.error_message is None
        assert retried.attempt_count == 0

    def test_retry_requires_failed(self, schedule_store, scheduled):
        with pytest.raises(InvalidStateError):
            schedule_store.retry(scheduled.id)

    def test_mark_published_only_from_scheduled(self, schedule_store, make_account, make_variant):
        draft = schedule_store.create(TEAM, make_variant("twitter"), make_account("twitter"))

        with pytest.raises(InvalidStateError):
            schedule_store.mark_published(draft.id, "remote-1", 1, utcnow())

    def test_mark_failed_records_reason(self, schedule_store, scheduled):
        failed = schedule_store.mark_failed(scheduled.id, FailureReason.CREDENTIAL_MISSING, "No account", 0, utcnow())

        assert failed.failure_reason == "CredentialMissing"
        assert failed.error_message == "No account"

    def test_delete(self, schedule_store, scheduled):
        schedule_store.delete(scheduled.id)

        with pytest.raises(NotFoundError):
            schedule_store.get(scheduled.id)

    def test_claimed_post_cannot_be_cancelled_or_deleted(self, schedule_store, scheduled):
        assert schedule_store.claim(scheduled.id)
        assert not schedule_store.claim(scheduled.id)

        with pytest.raises(InvalidStateError):
            schedule_store.cancel(scheduled.id)
        with pytest.raises(InvalidStateError):
            schedule_store.delete(scheduled.id)
        assert schedule_store.get(scheduled.id).post_status == PostStatus.SCHEDULED

        schedule_store.release(scheduled.id)
        assert schedule_store.cancel(scheduled.id).post_status == PostStatus.CANCELLED


class TestQueries:
    def test_due_posts_only_returns_scheduled_posts_in_the_past(self, schedule_store, make_account, make_variant):
        account = make_account("twitter")
        now = utcnow()
        due = schedule_store.create(TEAM, make_variant("twitter"), account, now - timedelta(minutes=1))
        schedule_store.create(TEAM, make_variant("twitter"), account, now + timedelta(hours=1))
        schedule_store.create(TEAM, make_variant("twitter"), account)
        cancelled = schedule_store.create(TEAM, make_variant("twitter"), account, now - timedelta(minutes=2))
        schedule_store.cancel(cancelled.id)

        assert [post.id for post in schedule_store.due_posts(now)] == [due.id]

    def test_list_posts_filters_and_orders(self, schedule_store, make_account, make_variant):
        account = make_account("twitter")
        late = schedule_store.create(TEAM, make_variant("twitter"), account, WHEN + timedelta(days=3))
        early = schedule_store.create(TEAM, make_variant("twitter"), account, WHEN)
        draft = schedule_store.create(TEAM, make_variant("twitter"), account)

        in_range = schedule_store.list_posts(TEAM, start=WHEN, end=WHEN + timedelta(days=7))
        assert [post.id for post in in_range] == [early.id, late.id]

        drafts = schedule_store.list_posts(TEAM, status=PostStatus.DRAFT)
        assert [post.id for post in drafts] == [draft.id]

        assert schedule_store.list_posts("other-team") == []
