from contextlib import asynccontextmanager

from fastapi import FastAPI

from chapter_access.core.config import settings
from chapter_access.core.logging import configure_logging
from chapter_access.db.session import close_engine
import chapter_access.models  # noqa: F401  # force model registration

from chapter_access.api.v1.access import router as access_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_engine()


def create_application() -> FastAPI:
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="Chapter Access API", lifespan=lifespan)

    @app.get("/")
    def root():
        return {"status": "ok", "service": "chapter-access"}

    # Routers
    app.include_router(access_router, prefix="/api/v1")

    return app


app = create_application()
