import asyncio

import pytest

from learnhub.core.exceptions import (
    PermissionDeniedException,
    ResourceConflictException,
    ResourceNotFoundException,
)
from learnhub.courses import progress
from learnhub.enrollments import enrollment_service as service
from learnhub.enrollments.enrollment_models import TargetKind

COMMUNITY = TargetKind.COMMUNITY
COURSE = TargetKind.COURSE


async def test_join_creates_active_enrollment(db, learner, community):
    enrollment, count = await service.join(db, learner, COMMUNITY, community["community_id"])

    assert enrollment["status"] == "active"
    assert enrollment["target_kind"] == "community"
    assert enrollment["enrollment_id"].startswith("ENR_")
    assert "_id" not in enrollment
    assert count == 1


async def test_join_unknown_target(db, learner):
    with pytest.raises(ResourceNotFoundException):
        await service.join(db, learner, COMMUNITY, "COM_MISSING")


async def test_concurrent_joins_leave_one_active_row(db, learner, community):
    community_id = community["community_id"]

    results = await asyncio.gather(
        *[service.join(db, learner, COMMUNITY, community_id) for _ in range(10)],
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    conflicts = [r for r in results if isinstance(r, ResourceConflictException)]
    assert len(successes) == 1
    assert len(conflicts) == 9
    assert await db.enrollments.count_documents(
        {"user_id": learner.user_id, "target_kind": "community", "target_id": community_id}
    ) == 1
    assert await service.count_active(db, COMMUNITY, community_id) == 1


async def test_insert_race_is_reported_as_conflict(db, learner, community, monkeypatch):
    """Two joins that both missed the existing-row check: the unique index decides"""
    community_id = community["community_id"]
    await service.join(db, learner, COMMUNITY, community_id)

    async def stale_lookup(*args, **kwargs):
        return None

    monkeypatch.setattr(service, "get_enrollment", stale_lookup)

    with pytest.raises(ResourceConflictException):
        await service.join(db, learner, COMMUNITY, community_id)
    assert await service.count_active(db, COMMUNITY, community_id) == 1


async def test_leave_is_not_repeatable(db, learner, make_user, community):
    community_id = community["community_id"]
    other = await make_user()
    await service.join(db, learner, COMMUNITY, community_id)
    await service.join(db, other, COMMUNITY, community_id)

    assert await service.leave(db, learner, COMMUNITY, community_id) == 1

    with pytest.raises(ResourceNotFoundException):
        await service.leave(db, learner, COMMUNITY, community_id)
    assert await service.count_active(db, COMMUNITY, community_id) == 1

    row = await service.get_enrollment(db, learner.user_id, COMMUNITY, community_id)
    assert row["status"] == "cancelled"
    assert row["cancelled_at"] is not None


async def test_rejoin_reactivates_the_same_row(db, learner, publisher, community, course):
    await service.join(db, learner, COMMUNITY, community["community_id"])
    enrollment, _ = await service.join(db, learner, COURSE, course["course_id"])
    first_lesson = course["lessons"][0]["lesson_id"]
    await progress.record_progress(db, enrollment, course, first_lesson, completed=True)

    before = await service.get_enrollment(db, learner.user_id, COURSE, course["course_id"])
    assert before.get("rejoined_at") is None

    await service.leave(db, learner, COURSE, course["course_id"])
    rejoined, count = await service.join(db, learner, COURSE, course["course_id"])

    assert rejoined["enrollment_id"] == enrollment["enrollment_id"]
    assert rejoined["status"] == "active"
    assert rejoined["cancelled_at"] is None
    assert count == 1
    # first join time is kept, the re-activation gets its own timestamp
    assert rejoined["enrolled_at"] == before["enrolled_at"]
    assert rejoined["rejoined_at"] is not None
    # history survives a leave/rejoin
    assert rejoined["progress"][0]["lesson_id"] == first_lesson
    assert await db.enrollments.count_documents({"user_id": learner.user_id, "target_kind": "course"}) == 1


async def test_concurrent_rejoins_reactivate_once(db, learner, community):
    community_id = community["community_id"]
    await service.join(db, learner, COMMUNITY, community_id)
    await service.leave(db, learner, COMMUNITY, community_id)

    results = await asyncio.gather(
        *[service.join(db, learner, COMMUNITY, community_id) for _ in range(5)],
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    conflicts = [r for r in results if isinstance(r, ResourceConflictException)]
    assert len(successes) == 1
    assert len(conflicts) == 4
    assert await service.count_active(db, COMMUNITY, community_id) == 1


async def test_rejoin_race_is_reported_as_conflict(db, learner, community, monkeypatch):
    """A re-join that read the cancelled row after another request already re-activated it"""
    community_id = community["community_id"]
    await service.join(db, learner, COMMUNITY, community_id)
    await service.leave(db, learner, COMMUNITY, community_id)
    cancelled = await service.get_enrollment(db, learner.user_id, COMMUNITY, community_id)
    await service.join(db, learner, COMMUNITY, community_id)

    async def stale_lookup(*args, **kwargs):
        return cancelled

    monkeypatch.setattr(service, "get_enrollment", stale_lookup)

    with pytest.raises(ResourceConflictException):
        await service.join(db, learner, COMMUNITY, community_id)
    assert await service.count_active(db, COMMUNITY, community_id) == 1


async def test_course_join_requires_community_membership(db, learner, community, course):
    with pytest.raises(PermissionDeniedException):
        await service.join(db, learner, COURSE, course["course_id"])

    await service.join(db, learner, COMMUNITY, community["community_id"])
    enrollment, count = await service.join(db, learner, COURSE, course["course_id"])
    assert enrollment["status"] == "active"
    assert count == 1


async def test_cancelled_community_membership_blocks_course_join(db, learner, community, course):
    await service.join(db, learner, COMMUNITY, community["community_id"])
    await service.leave(db, learner, COMMUNITY, community["community_id"])

    with pytest.raises(PermissionDeniedException):
        await service.join(db, learner, COURSE, course["course_id"])


async def test_community_owner_and_admin_skip_membership(db, publisher, admin, course):
    await service.join(db, publisher, COURSE, course["course_id"])
    _, count = await service.join(db, admin, COURSE, course["course_id"])
    assert count == 2


async def test_completed_course_cannot_be_joined_again(db, learner, community, course):
    await service.join(db, learner, COMMUNITY, community["community_id"])
    enrollment, _ = await service.join(db, learner, COURSE, course["course_id"])
    await progress.complete_course(db, enrollment)

    with pytest.raises(ResourceConflictException, match="completed"):
        await service.join(db, learner, COURSE, course["course_id"])


async def test_removing_another_member_requires_ownership(db, learner, make_user, publisher, community):
    community_id = community["community_id"]
    other = await make_user()
    await service.join(db, learner, COMMUNITY, community_id)

    with pytest.raises(PermissionDeniedException):
        await service.leave(db, other, COMMUNITY, community_id, learner.user_id)

    count = await service.leave(db, publisher, COMMUNITY, community_id, learner.user_id)
    assert count == 0

    audit = await db.audit_logs.find_one({"action": "enrollment.remove"})
    assert audit["performed_by"] == publisher.user_id
    assert audit["metadata"]["user_id"] == learner.user_id


async def test_remove_other_member_from_missing_target(db, admin, learner):
    with pytest.raises(ResourceNotFoundException):
        await service.leave(db, admin, COMMUNITY, "COM_MISSING", learner.user_id)


async def test_get_status_has_no_side_effects(db, learner, community):
    community_id = community["community_id"]

    assert await service.get_status(db, learner, COMMUNITY, community_id) == {"enrolled": False, "status": None}
    assert await service.get_status(db, learner, COMMUNITY, "COM_MISSING") == {"enrolled": False, "status": None}
    assert await db.enrollments.count_documents({}) == 0

    await service.join(db, learner, COMMUNITY, community_id)
    assert await service.get_status(db, learner, COMMUNITY, community_id) == {"enrolled": True, "status": "active"}

    await service.leave(db, learner, COMMUNITY, community_id)
    assert await service.get_status(db, learner, COMMUNITY, community_id) == {"enrolled": False, "status": "cancelled"}


async def test_list_members_counts_independently_of_page(db, make_user, publisher, learner, community):
    community_id = community["community_id"]
    members = [await make_user() for _ in range(5)]
    for member in members:
        await service.join(db, member, COMMUNITY, community_id)
    await service.leave(db, members[0], COMMUNITY, community_id)

    rows, total = await service.list_members(db, publisher, COMMUNITY, community_id, skip=0, limit=2)
    assert total == 4
    assert len(rows) == 2
    assert rows[0]["user"]["name"]
    assert "progress" not in rows[0]

    with pytest.raises(PermissionDeniedException):
        await service.list_members(db, learner, COMMUNITY, community_id, skip=0, limit=2)


async def test_list_user_enrollments_includes_target_summary(db, learner, community, course):
    await service.join(db, learner, COMMUNITY, community["community_id"])
    await service.join(db, learner, COURSE, course["course_id"])

    rows, total = await service.list_user_enrollments(db, learner, skip=0, limit=25)
    assert total == 2
    by_kind = {row["target_kind"]: row for row in rows}
    assert by_kind["community"]["target"]["name"] == "Python Guild"
    assert by_kind["course"]["target"]["title"] == "Async Python"
    assert by_kind["course"]["target"]["community_id"] == community["community_id"]

    rows, total = await service.list_user_enrollments(db, learner, skip=0, limit=25, status="cancelled")
    assert (rows, total) == ([], 0)
