"""FastAPI application."""

import argparse
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from configs import settings
from leadflow.controllers.calendar_controllers import calendar_router
from leadflow.controllers.leads_controllers import leads_router
from leadflow.controllers.sessions_controllers import sessions_router
from leadflow.controllers.staff_controllers import staff_router
from leadflow.controllers.triggers_controllers import triggers_router
from leadflow.repositories.records import change_feed  # noqa: F401
from leadflow.repositories.records import models  # noqa: F401
from leadflow.repositories.records.database import Base, engine
from leadflow.services.redis.redis_services import create_redis_relay

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build the API, creating tables and starting the Redis relay when configured."""
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully!")

    relay = create_redis_relay()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if relay is not None:
            relay.start()
        yield
        if relay is not None:
            relay.stop()

    logger.info("Starting FastAPI application...")
    application = FastAPI(
        lifespan=lifespan,
        title="Lead Workflow API",
        root_path=settings.ROOT_PATH_BACKEND,
        description="Lead intake, assignment and follow-up endpoints",
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(leads_router)
    application.include_router(staff_router)
    application.include_router(calendar_router)
    application.include_router(triggers_router)
    application.include_router(sessions_router)

    @application.get("/", response_description="Api healthcheck")  # type: ignore[misc]
    async def index() -> Dict[str, str]:
        """Define a route for handling HTTP GET requests to the root URL ("/")."""
        return {"status": "ok"}

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    parser = argparse.ArgumentParser()
    parser.add_argument("--docker", action="store_true", help="Running with docker")
    parser.add_argument("--host", required=True, help="Application host.")
    parser.add_argument("--port", required=True, help="Application port.")
    parser.add_argument(
        "--reload",
        required=False,
        help="Enable auto-reload for development purposes.",
    )
    parser.add_argument("--seed", action="store_true", help="Insert demo data when empty.")
    args = parser.parse_args()
    if not args.docker:
        from dotenv import load_dotenv

        load_dotenv("../../.env")

    if args.seed:
        from startup import create_mock_data

        logger.info("Populating mocked data!")
        create_mock_data()

    uvicorn.run(
        "app:app", host=args.host, port=int(args.port), reload=(args.reload or False)
    )
