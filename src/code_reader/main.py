from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
import json
import logging
from pathlib import Path
from fastapi import FastAPI

from code_reader.api.config import get_settings
from code_reader.api.deps import get_consumer, get_coordinator
from code_reader.api.exception_handlers import register_exception_handlers
from code_reader.api.middleware import setup_middlewares
from code_reader.api.routes import router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    settings = get_settings()
    if settings.store == "file":
        data_dir = Path(settings.data_dir)
        data_dir.mkdir(parents=True, exist_ok=True)
        probe_path = data_dir / ".rw_check"
        probe_path.write_text("ok", encoding="utf-8")
        probe_path.unlink()

    coordinator = get_coordinator()
    consumer = get_consumer()
    stop_event = asyncio.Event()
    consumer_task = asyncio.create_task(consumer.run_forever(stop_event))
    logging.info(
        json.dumps(
            {"event": "startup", "message": "Queue consumer started", "store": settings.store},
            ensure_ascii=False,
        )
    )
    try:
        yield
    finally:
        stop_event.set()
        consumer_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await consumer_task
        await coordinator.close()
        logging.info(json.dumps({"event": "shutdown", "message": "Queue consumer stopped"}, ensure_ascii=False))


def create_app() -> FastAPI:
    app = FastAPI(
        title="code-reader",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    setup_middlewares(app)
    register_exception_handlers(app)
    app.include_router(router)
    return app


app = create_app()
