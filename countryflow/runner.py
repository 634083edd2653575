"""Entry point for the pipeline process: bootstrap database, ledger, stages and the retry sweeper."""

import asyncio
import logging
import os
import signal
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from countryflow.app import App, create_app
from countryflow.integrations.kafka import KafkaCountryProducer
from countryflow.integrations.restcountries import RestCountriesClient
from countryflow.logging_config import setup_logging
from countryflow.settings import get_setting, load_settings

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _build_producer(settings: dict[str, Any]) -> KafkaCountryProducer:
    return KafkaCountryProducer(
        bootstrap_servers=os.environ.get("KAFKA_BOOTSTRAP_SERVERS")
        or get_setting(settings, "kafka.bootstrap_servers", "localhost:9092"),
        topic=get_setting(settings, "kafka.topic", "country-events"),
        request_timeout_ms=get_setting(settings, "kafka.request_timeout_ms", 30000),
    )


def _build_data_source(settings: dict[str, Any]) -> RestCountriesClient:
    return RestCountriesClient(
        base_url=get_setting(settings, "enrichment.base_url", "https://restcountries.com/v3.1"),
        timeout=get_setting(settings, "enrichment.timeout", 10.0),
    )


async def _build_app(settings: dict[str, Any], producer: KafkaCountryProducer) -> App:
    return await create_app(
        db_path=_PROJECT_ROOT / get_setting(settings, "database.path", "data/countryflow.db"),
        data_source=_build_data_source(settings),
        bus=producer,
        busy_timeout=get_setting(settings, "database.busy_timeout", 5000),
        inline_dispatch=get_setting(settings, "events.inline_dispatch", True),
        sweep_interval=get_setting(settings, "events.sweep_interval", 300.0),
        grace_period=get_setting(settings, "events.grace_period", 60.0),
    )


def _install_signal_handlers(shutdown_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown_event.set)
        except NotImplementedError:
            pass  # Windows: KeyboardInterrupt handled in main()


async def main_async() -> None:
    """Bootstrap: settings -> logging -> producer -> app -> recover -> sweep -> wait for shutdown."""
    settings = load_settings()
    setup_logging(_PROJECT_ROOT, settings)
    shutdown_event = asyncio.Event()
    _install_signal_handlers(shutdown_event)

    producer = _build_producer(settings)
    app: App | None = None
    try:
        await producer.start()
        app = await _build_app(settings, producer)
        if get_setting(settings, "events.republish_on_start", False):
            await app.sweeper.resubmit_all()
        if get_setting(settings, "events.retry_enabled", True):
            app.sweeper.start()
        else:
            logger.warning("Retry sweep disabled; failed publications stay incomplete")
        logger.info("countryflow started")
        await shutdown_event.wait()
    except asyncio.CancelledError:
        pass
    finally:
        if app is not None:
            await app.close()
        await producer.stop()
        logger.info("countryflow stopped")


def main() -> None:
    """Synchronous entry for the pipeline process."""
    load_dotenv(_PROJECT_ROOT / ".env")
    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        pass


__all__ = ["main"]
