"""geoclock server — main entry point.

This is the only file that knows about concrete implementations.
It wires together the core, queue, storage, and API layers.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from geoclock.api.areas import router as areas_router
from geoclock.api.checks import router as checks_router
from geoclock.api.monitoring import router as monitoring_router
from geoclock.config import AppConfig, load_config
from geoclock.core.processor import ClockCheckProcessor, DecisionPolicy
from geoclock.core.stats import CheckStats
from geoclock.queue.asyncio_queue import AsyncioDecisionQueue
from geoclock.storage.area_file import YamlAreaSource
from geoclock.storage.base import AreaSource
from geoclock.storage.file_storage import FileDecisionStorage

log = structlog.get_logger()

# Module-level singletons (set during startup)
_processor: ClockCheckProcessor | None = None
_stats: CheckStats | None = None
_config: AppConfig | None = None
_areas: AreaSource | None = None


def get_processor() -> ClockCheckProcessor:
    assert _processor is not None, "Server not initialized"
    return _processor


def get_stats() -> CheckStats:
    assert _stats is not None, "Server not initialized"
    return _stats


def get_config() -> AppConfig:
    assert _config is not None, "Server not initialized"
    return _config


def get_areas() -> AreaSource:
    assert _areas is not None, "Server not initialized"
    return _areas


def _setup_logging(config: AppConfig) -> None:
    """Configure structlog based on the logging config."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.logging.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    logger_factory = structlog.PrintLoggerFactory()
    if config.logging.file:
        logger_factory = structlog.WriteLoggerFactory(
            file=open(config.logging.file, "a"),
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.logging.level.upper()),
        ),
        logger_factory=logger_factory,
    )


def build_processor(config: AppConfig, stats: CheckStats, areas: AreaSource) -> ClockCheckProcessor:
    queue = AsyncioDecisionQueue(max_size=config.queue.max_size)
    storage = FileDecisionStorage(base_dir=config.storage.base_dir)
    policy = DecisionPolicy(
        admin_tolerance_m=config.geofence.admin_tolerance_m,
        max_acceptable_accuracy_m=config.geofence.max_acceptable_accuracy_m,
        enforce_for_modes=list(config.geofence.enforce_for_modes),
    )
    return ClockCheckProcessor(
        queue=queue,
        storage=storage,
        stats=stats,
        areas=areas,
        acquisition=config.acquisition.to_acquisition_config(),
        policy=policy,
        debounce_ms=config.acquisition.debounce_ms,
        session_idle_seconds=config.limits.active_window_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    global _processor, _stats, _config, _areas

    _config = load_config()
    _setup_logging(_config)

    log.info("server_starting",
             env=_config.server.env,
             storage_dir=_config.storage.base_dir,
             areas_file=_config.geofence.areas_file)

    # Create components
    _stats = CheckStats(active_window_seconds=_config.limits.active_window_seconds)
    _areas = YamlAreaSource(_config.geofence.areas_file)
    _processor = build_processor(_config, _stats, _areas)

    # Start background storage consumer
    consumer_task = asyncio.create_task(_processor.run_storage_consumer())

    log.info("server_started",
             host=_config.server.host,
             port=_config.server.port,
             areas=len(_areas.list_areas()))

    yield

    # Shutdown
    consumer_task.cancel()
    try:
        await consumer_task
    except asyncio.CancelledError:
        pass
    log.info("server_stopped")


app = FastAPI(
    title="geoclock",
    description="Attendance location integrity and geofence validation",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(checks_router)
app.include_router(areas_router)
app.include_router(monitoring_router)
