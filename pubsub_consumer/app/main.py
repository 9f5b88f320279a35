import asyncio
import signal

from loguru import logger

from pubsub_consumer.app.application.events import ConsumerEvent
from pubsub_consumer.app.composition import create_consumer_dependencies
from pubsub_consumer.app.config.settings import Settings
from pubsub_consumer.app.core import SERVICE_NAME
from pubsub_consumer.app.core.logging import configure_logging


def _log(event: str, **kwargs) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


async def run_consumer(settings: Settings | None = None) -> None:
    settings = settings or Settings()
    configure_logging(settings)

    deps = create_consumer_dependencies(settings)
    await deps.connect()
    consumer = deps.consumer
    consumer.add_handler(ConsumerEvent.STARTED, lambda: _log("consumer_started"))
    consumer.add_handler(ConsumerEvent.STOPPED, lambda: _log("consumer_stopped"))

    def request_shutdown() -> None:
        if consumer.is_running:
            _log("shutdown_signal")
            consumer.stop()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_shutdown)
        except NotImplementedError:
            pass

    try:
        consumer.start()
        await consumer.wait_stopped()
    finally:
        await deps.close()
        _log("consumer_shutdown_complete")


def main() -> None:
    try:
        asyncio.run(run_consumer())
    except KeyboardInterrupt:
        _log("consumer_interrupted")
    except Exception as e:
        logger.exception("consumer failed: {}", e)
        raise


if __name__ == "__main__":
    main()
