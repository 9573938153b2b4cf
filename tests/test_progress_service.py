import pytest

from learnhub.core.exceptions import (
    PermissionDeniedException,
    ResourceConflictException,
    ResourceNotFoundException,
)
from learnhub.courses import progress
from learnhub.enrollments import enrollment_service
from learnhub.enrollments.enrollment_models import TargetKind


@pytest.fixture
async def enrollment(db, learner, community, course):
    await enrollment_service.join(db, learner, TargetKind.COMMUNITY, community["community_id"])
    enrollment, _ = await enrollment_service.join(db, learner, TargetKind.COURSE, course["course_id"])
    return enrollment


async def reload(db, enrollment):
    return await db.enrollments.find_one({"enrollment_id": enrollment["enrollment_id"]}, {"_id": 0})


def lesson_id(course, index):
    return course["lessons"][index]["lesson_id"]


async def test_partial_updates_touch_only_given_fields(db, course, enrollment):
    first = lesson_id(course, 0)

    items = await progress.record_progress(db, enrollment, course, first, last_position_seconds=30)
    assert items[0]["last_position_seconds"] == 30
    assert items[0]["completed"] is False

    enrollment = await reload(db, enrollment)
    items = await progress.record_progress(db, enrollment, course, first, completed=True)
    assert items[0]["last_position_seconds"] == 30
    assert items[0]["completed"] is True

    enrollment = await reload(db, enrollment)
    items = await progress.record_progress(db, enrollment, course, first, last_position_seconds=90)
    assert items[0]["last_position_seconds"] == 90
    assert items[0]["completed"] is True
    assert len(items) == 1


async def test_empty_update_returns_current_progress(db, course, enrollment):
    first = lesson_id(course, 0)
    await progress.record_progress(db, enrollment, course, first, last_position_seconds=12)
    enrollment = await reload(db, enrollment)

    items = await progress.record_progress(db, enrollment, course, first)
    assert items == enrollment["progress"]


async def test_repeated_first_writes_do_not_duplicate_records(db, course, enrollment):
    first = lesson_id(course, 0)
    # same stale enrollment snapshot both times
    await progress.record_progress(db, enrollment, course, first, last_position_seconds=5)
    items = await progress.record_progress(db, enrollment, course, first, last_position_seconds=8)

    assert len(items) == 1
    assert items[0]["last_position_seconds"] == 8


async def test_out_of_order_completion_is_rejected(db, course, enrollment):
    second, third = lesson_id(course, 1), lesson_id(course, 2)

    with pytest.raises(PermissionDeniedException):
        await progress.record_progress(db, enrollment, course, second, completed=True)

    # position updates on a blocked lesson are allowed and do not unlock anything
    items = await progress.record_progress(db, enrollment, course, third, last_position_seconds=10)
    states = progress.lesson_states(course["lessons"], items)
    assert states[third] == "blocked"


async def test_completing_in_order_unlocks_lessons(db, course, enrollment):
    for index in range(3):
        enrollment = await reload(db, enrollment)
        items = await progress.record_progress(db, enrollment, course, lesson_id(course, index), completed=True)

    states = progress.lesson_states(course["lessons"], items)
    assert set(states.values()) == {"completed"}


async def test_uncompleting_a_lesson_before_a_completed_one_is_rejected(db, course, enrollment):
    first, second = lesson_id(course, 0), lesson_id(course, 1)
    await progress.record_progress(db, enrollment, course, first, completed=True)
    enrollment = await reload(db, enrollment)
    await progress.record_progress(db, enrollment, course, second, completed=True)
    enrollment = await reload(db, enrollment)

    with pytest.raises(ResourceConflictException):
        await progress.record_progress(db, enrollment, course, first, completed=False)

    # the last completed lesson can be reopened
    items = await progress.record_progress(db, enrollment, course, second, completed=False)
    states = progress.lesson_states(course["lessons"], items)
    assert states[first] == "completed"
    assert states[second] == "pending"
    assert states[lesson_id(course, 2)] == "blocked"


async def test_unknown_lesson(db, course, enrollment):
    with pytest.raises(ResourceNotFoundException):
        await progress.record_progress(db, enrollment, course, "LES_MISSING", completed=True)


async def test_complete_course_is_idempotent(db, enrollment):
    completed = await progress.complete_course(db, enrollment)
    assert completed["status"] == "completed"
    assert completed["completed_at"] is not None

    again = await progress.complete_course(db, completed)
    assert again["status"] == "completed"
    assert again["completed_at"] == completed["completed_at"]

    # stale snapshot still reports the stored completion
    stale = await progress.complete_course(db, enrollment)
    assert stale["status"] == "completed"


async def test_complete_course_after_leaving(db, learner, course, enrollment):
    await enrollment_service.leave(db, learner, TargetKind.COURSE, course["course_id"])
    with pytest.raises(ResourceNotFoundException):
        await progress.complete_course(db, enrollment)


def test_get_progress_without_enrollment():
    assert progress.get_progress(None) == []
