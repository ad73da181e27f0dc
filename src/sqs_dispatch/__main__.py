"""Run the consumer and publish endpoint under uvicorn."""

import uvicorn

from sqs_dispatch.api.server import create_app
from sqs_dispatch.consumer.runtime import ConsumerRuntime
from sqs_dispatch.core import configure_from_settings
from sqs_dispatch.core.config import get_settings


def main() -> None:
    settings = get_settings()
    configure_from_settings(settings)
    # A pre-built runtime keeps the lifespan from configuring logging again
    app = create_app(ConsumerRuntime.from_settings(settings))
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
