import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from learnhub.audit.audit_router import router as audit_router
from learnhub.communities.community_router import router as community_router
from learnhub.core import database
from learnhub.core.config import settings
from learnhub.core.error_handlers import register_exception_handlers
from learnhub.core.logging_config import request_logging_middleware, setup_logging
from learnhub.courses.course_router import router as course_router
from learnhub.courses.progress_router import router as progress_router
from learnhub.enrollments.enrollment_router import router as enrollment_router
from learnhub.posts.post_router import router as post_router
from learnhub.reviews.review_router import router as review_router
from learnhub.system.health_router import router as health_router
from learnhub.topics.topic_router import router as topic_router
from learnhub.users.user_router import router as user_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(
        log_level=settings.LOG_LEVEL,
        log_dir=settings.LOG_DIR or None,
        use_json=settings.LOG_JSON,
        use_colors=settings.APP_ENV != "production",
    )
    db = database.connect()
    await database.create_indexes(db)
    logger.info("%s started (%s)", settings.APP_NAME, settings.APP_ENV)
    yield
    database.close()
    logger.info("%s stopped", settings.APP_NAME)


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials="*" not in settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)
app.middleware("http")(request_logging_middleware)

register_exception_handlers(app)

app.include_router(health_router)
app.include_router(user_router, prefix=settings.API_PREFIX)
app.include_router(community_router, prefix=settings.API_PREFIX)
app.include_router(course_router, prefix=settings.API_PREFIX)
app.include_router(enrollment_router, prefix=settings.API_PREFIX)
app.include_router(progress_router, prefix=settings.API_PREFIX)
app.include_router(review_router, prefix=settings.API_PREFIX)
app.include_router(post_router, prefix=settings.API_PREFIX)
app.include_router(topic_router, prefix=settings.API_PREFIX)
app.include_router(audit_router, prefix=settings.API_PREFIX)
