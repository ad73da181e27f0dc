"""HTTP surface: publish endpoint, health check and consumer lifecycle hooks.

Usage:
    uvicorn sqs_dispatch.api.server:app
    python -m sqs_dispatch
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from starlette.concurrency import run_in_threadpool

from sqs_dispatch.consumer.runtime import ConsumerRuntime
from sqs_dispatch.core import configure_from_settings, get_logger
from sqs_dispatch.core.config import get_settings

logger = get_logger(__name__)


def create_app(runtime: Optional[ConsumerRuntime] = None) -> FastAPI:
    """Create the application.

    Args:
        runtime: Pre-built runtime; built from environment settings at
            startup when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        rt = runtime
        if rt is None:
            settings = get_settings()
            configure_from_settings(settings)
            rt = ConsumerRuntime.from_settings(settings)

        app.state.runtime = rt
        # Fails startup outright when the queue cannot be resolved
        await run_in_threadpool(rt.startup)
        try:
            yield
        finally:
            await run_in_threadpool(rt.shutdown)

    app = FastAPI(
        title="SQS Dispatch",
        description="Bounded-concurrency SQS consumer with a publish endpoint",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.post("/push")
    async def push(request: Request) -> Response:
        """Forward the raw request body to the queue."""
        body = (await request.body()).decode("utf-8")
        rt: ConsumerRuntime = request.app.state.runtime
        await run_in_threadpool(rt.publisher.publish, body)
        return Response(status_code=200)

    @app.get("/health")
    async def health(request: Request) -> dict:
        rt: ConsumerRuntime = request.app.state.runtime
        return rt.health()

    return app


app = create_app()
