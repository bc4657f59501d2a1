"""Application entry point and bootstrap.

Wires the database, DAOs, browser automation, services and routers, and owns
startup and graceful shutdown.
"""

import asyncio
import logging
import signal
import sys
import time
from collections.abc import Callable
from datetime import timedelta

from fastapi import FastAPI

from jobrelay import __version__
from jobrelay.automation.browser_pool import BrowserPool
from jobrelay.automation.credential_manager import CredentialManager
from jobrelay.automation.driver import PlaywrightLauncher
from jobrelay.automation.posting import PostingStateMachine
from jobrelay.config import RelayConfig
from jobrelay.dao import ContextSessionDAO, CredentialDAO, JobDAO, PublishRecordDAO
from jobrelay.database import Database
from jobrelay.logging_filters import install_uvicorn_access_log_filters
from jobrelay.observability.error_log_file import setup_error_log_file
from jobrelay.routers.context_router import create_context_router
from jobrelay.routers.deep_link_router import create_deep_link_router
from jobrelay.routers.publish_router import create_publish_router
from jobrelay.routers.webhook_router import create_webhook_router
from jobrelay.services.context_relay_service import ContextRelayService
from jobrelay.services.post_composer import DeepLinkBuilder
from jobrelay.services.publish_service import PublishRecordLifecycle, PublishService
from jobrelay.services.webhook_relay import WebhookRelay
from jobrelay.services.webhook_service import WebhookService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

# Relay requests are logged by WebhookRelay itself
logging.getLogger("httpx").setLevel(logging.WARNING)


class Application:
    """Main application container.

    Manages all application components and their lifecycle.
    """

    def __init__(self, config: RelayConfig) -> None:
        self.config = config
        self.started_at = time.monotonic()
        self._shut_down = False

        self.database: Database | None = None
        self.fastapi_app: FastAPI | None = None

        # DAOs
        self.job_dao: JobDAO | None = None
        self.record_dao: PublishRecordDAO | None = None
        self.credential_dao: CredentialDAO | None = None
        self.session_dao: ContextSessionDAO | None = None

        # Automation
        self.browser_pool: BrowserPool | None = None

        # Services
        self.relay: WebhookRelay | None = None
        self.context_relay_service: ContextRelayService | None = None
        self.webhook_service: WebhookService | None = None
        self.publish_service: PublishService | None = None

    async def setup(self) -> None:
        """Initialize all components in dependency order."""
        logging.getLogger().setLevel(self.config.log_level.upper())
        setup_error_log_file(self.config)

        self.database = Database(self.config.database_url)
        if self.config.auto_create_tables:
            await self.database.init_db()
        logger.info("Database initialized")

        self.job_dao = JobDAO(self.database)
        self.record_dao = PublishRecordDAO(self.database)
        self.credential_dao = CredentialDAO(self.database)
        self.session_dao = ContextSessionDAO(self.database)

        self.relay = WebhookRelay(
            self.config.relay_webhook_url,
            timeout_seconds=self.config.relay_timeout_seconds,
        )
        if not self.relay.enabled:
            logger.warning("No relay webhook URL configured, context payloads will be dropped")

        self.context_relay_service = ContextRelayService(
            job_dao=self.job_dao,
            record_dao=self.record_dao,
            session_dao=self.session_dao,
            relay=self.relay,
            messenger_link=self.config.messenger_link,
            session_ttl=timedelta(hours=self.config.context_session_ttl_hours),
        )
        await self.context_relay_service.sweep_expired()
        self.webhook_service = WebhookService(self.context_relay_service, self.relay)

        selectors = self.config.selector_set()
        self.browser_pool = BrowserPool(
            PlaywrightLauncher(
                headless=self.config.browser_headless,
                args=self.config.browser_args,
                user_agent=self.config.browser_user_agent,
                viewport={
                    "width": self.config.browser_viewport_width,
                    "height": self.config.browser_viewport_height,
                },
                locale=self.config.browser_locale,
                default_timeout_ms=self.config.browser_default_timeout_ms,
            ),
            acquire_timeout_seconds=self.config.account_busy_wait_seconds,
        )
        credential_manager = CredentialManager(
            self.credential_dao,
            base_url=self.config.site_base_url,
            artifact_domain=self.config.artifact_domain,
            identity_artifact=self.config.identity_artifact,
            session_artifact=self.config.session_artifact,
            selectors=selectors,
            timings=self.config.login_timings(),
        )
        self.publish_service = PublishService(
            job_dao=self.job_dao,
            lifecycle=PublishRecordLifecycle(self.record_dao),
            pool=self.browser_pool,
            credential_manager=credential_manager,
            state_machine=PostingStateMachine(selectors, self.config.posting_timings()),
            link_builder=DeepLinkBuilder(self.config.public_base_url),
            between_posts_seconds=self.config.between_posts_seconds,
        )
        logger.info("Application setup complete (%d accounts)", len(self.config.accounts))

    def include_routers(self, app: FastAPI) -> None:
        """Register every router on a FastAPI app."""
        app.include_router(create_deep_link_router(self.context_relay_service))
        app.include_router(
            create_webhook_router(
                self.webhook_service, verify_token=self.config.webhook_verify_token
            )
        )
        app.include_router(
            create_publish_router(
                self.publish_service,
                self.config.get_account,
                pending_limit=self.config.pending_jobs_limit,
            )
        )
        app.include_router(
            create_context_router(
                self.context_relay_service, list_limit=self.config.context_list_limit
            )
        )

        @app.get("/health")
        async def health_check() -> dict:
            """Health check endpoint."""
            return {
                "status": "healthy",
                "version": __version__,
                "uptimeSeconds": round(time.monotonic() - self.started_at, 1),
            }

        logger.info("Routers registered")

    def create_fastapi_app(self) -> FastAPI:
        """Create the FastAPI application with all routers."""
        self.fastapi_app = FastAPI(
            title="jobrelay",
            description="Job post publishing and chat context relay",
            version=__version__,
        )
        self.include_routers(self.fastapi_app)
        return self.fastapi_app

    async def shutdown(self) -> None:
        """Gracefully shut down: relay drain, browsers, then the database."""
        if self._shut_down:
            return
        self._shut_down = True
        logger.info("Initiating graceful shutdown...")

        if self.relay:
            await self.relay.aclose(self.config.relay_drain_seconds)
            logger.info("Relay drained")

        if self.browser_pool:
            await self.browser_pool.shutdown()

        if self.database:
            await self.database.close()
            logger.info("Database connection closed")

        logger.info("Graceful shutdown complete")

    def setup_signal_handlers(self, on_signal: Callable[[], None]) -> None:
        """Call ``on_signal`` on SIGINT or SIGTERM."""
        loop = asyncio.get_running_loop()

        def signal_handler(sig: signal.Signals) -> None:
            logger.info("Received signal %s, initiating shutdown...", sig.name)
            on_signal()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))


# Global application instance
_app: Application | None = None


def get_application() -> Application:
    """Get the global application instance.

    Raises:
        RuntimeError: If application not initialized.
    """
    if _app is None:
        raise RuntimeError("Application not initialized")
    return _app


async def create_app(config: RelayConfig | None = None) -> Application:
    """Create and set up the application.

    Args:
        config: Optional configuration. If not provided, loads from
                config.json with environment variable overrides.
    """
    global _app

    if config is None:
        config = RelayConfig.from_json_file()

    _app = Application(config)
    await _app.setup()
    _app.create_fastapi_app()
    return _app


async def main() -> None:
    """Run the application until SIGINT or SIGTERM."""
    import uvicorn

    logger.info("Starting jobrelay...")
    try:
        config = RelayConfig.from_json_file()
        app = await create_app(config)

        uvicorn_config = uvicorn.Config(
            app.fastapi_app,
            host=config.api_host,
            port=config.api_port,
            log_level="info",
        )
        uvicorn_config.load()
        install_uvicorn_access_log_filters()

        server = uvicorn.Server(uvicorn_config)
        server.install_signal_handlers = lambda: None  # We handle signals

        def request_exit() -> None:
            server.should_exit = True

        app.setup_signal_handlers(request_exit)
        logger.info(
            "Application running. API available at http://%s:%d",
            config.api_host,
            config.api_port,
        )
        await server.serve()
    except Exception as e:
        logger.exception("Application error: %s", e)
        raise
    finally:
        if _app:
            await _app.shutdown()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
