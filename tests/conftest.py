import pytest
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from learnhub.auth.auth_utils import create_access_token
from learnhub.auth.permissions import UserContext
from learnhub.communities import community_service
from learnhub.communities.community_models import CommunityCreate
from learnhub.core.database import create_indexes, generate_id, get_db, utcnow
from learnhub.courses import course_service
from learnhub.courses.course_models import CourseCreate, LessonInput
from learnhub.main import app

API = "/api/v1"


def auth_headers(user) -> dict:
    user_id = user.user_id if isinstance(user, UserContext) else user["user_id"]
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def as_ctx(profile: dict) -> UserContext:
    return UserContext(profile["user_id"], profile)


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client["learnhub_test"]
    await create_indexes(database)
    yield database


@pytest.fixture
async def client(db):
    async def override_get_db():
        return db

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make(role: str = "learner", name: str = None) -> UserContext:
        counter["n"] += 1
        now = utcnow()
        profile = {
            "user_id": generate_id("USR"),
            "name": name or f"{role.title()} {counter['n']}",
            "email": f"{role}{counter['n']}@example.com",
            "role": role,
            "photo": None,
            "created_at": now,
            "updated_at": now,
        }
        await db.users_profile.insert_one(profile)
        profile.pop("_id", None)
        return as_ctx(profile)

    return _make


@pytest.fixture
async def publisher(make_user):
    return await make_user("publisher", "Paula Publisher")


@pytest.fixture
async def learner(make_user):
    return await make_user("learner", "Lee Learner")


@pytest.fixture
async def admin(make_user):
    return await make_user("admin", "Ada Admin")


@pytest.fixture
async def community(db, publisher):
    return await community_service.create_community(
        db,
        publisher,
        CommunityCreate(name="Python Guild", description="Learn Python together"),
    )


def lesson_inputs(count: int = 3):
    return [
        LessonInput(title=f"Lesson {i + 1}", type="video", url=f"https://cdn.example.com/{i + 1}.mp4", duration=600)
        for i in range(count)
    ]


@pytest.fixture
def make_course(db, publisher, community):
    async def _make(membership: float = 50, lessons: int = 3, title: str = "Async Python") -> dict:
        return await course_service.create_course(
            db,
            publisher,
            community["community_id"],
            CourseCreate(
                title=title,
                description="From coroutines to task groups",
                weeks=4,
                membership=membership,
                minimum_skill="intermediate",
                lessons=lesson_inputs(lessons),
            ),
        )

    return _make


@pytest.fixture
async def course(make_course):
    return await make_course()
