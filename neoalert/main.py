import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog

from neoalert.core.config import settings
from neoalert.core.logging import setup_logging
from neoalert.modules.alerts.engine import AuditSink, ClinicalAlertEngine
from neoalert.modules.alerts.escalation import EscalationNotifier
from neoalert.modules.alerts.service import build_engine

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(
    notifier: EscalationNotifier | None = None,
    audit_sink: AuditSink | None = None,
) -> AsyncGenerator[ClinicalAlertEngine, None]:
    # Startup
    engine = build_engine(notifier=notifier, audit_sink=audit_sink)
    await engine.start()
    log.info("alert engine started", project=settings.PROJECT_NAME, environment=settings.ENVIRONMENT)

    try:
        yield engine
    finally:
        # Shutdown
        await engine.stop()
        engine.bus.clear()
        log.info("alert engine stopped")


async def serve() -> None:
    async with lifespan():
        await asyncio.Event().wait()


def main() -> None:
    setup_logging()
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        log.info("alert engine interrupted")


if __name__ == "__main__":
    main()
