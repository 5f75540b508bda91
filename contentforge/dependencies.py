import logging
from typing import Any, Optional

import httpx
from fastapi import Header, HTTPException, Request
from sqlalchemy.orm import sessionmaker

from contentforge.config import Settings
from contentforge.services.content_service import ContentService
from contentforge.services.credential_store import CredentialStore
from contentforge.services.generation_service import GenerationService
from contentforge.services.platforms.registry import AdapterRegistry, build_default_registry
from contentforge.services.publish_orchestrator import PublishOrchestrator
from contentforge.services.schedule_store import ScheduleStore
from contentforge.services.scheduler_service import SchedulerService
from contentforge.services.variant_aggregator import VariantAggregator

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Every core component, built once per application from explicit settings.

    Tests build their own container with an in-memory session factory, a
    mock HTTP transport and a fake generator client.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: sessionmaker,
        http_client: Optional[httpx.AsyncClient] = None,
        generator_client: Optional[Any] = None,
        registry: Optional[AdapterRegistry] = None,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.http_client = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        self.registry = registry or build_default_registry(settings, self.http_client)

        hints = {platform: self.registry.capabilities(platform).prompt_hint for platform in self.registry.platforms()}
        self.generator = GenerationService(settings, client=generator_client, prompt_hints=hints)
        self.aggregator = VariantAggregator(
            self.generator,
            self.registry,
            max_concurrency=settings.generation_max_concurrency,
            timeout_seconds=settings.generation_timeout_seconds,
            degraded_failure_ratio=settings.degraded_failure_ratio,
            default_redundancy=settings.default_redundancy,
        )
        self.content = ContentService(session_factory, self.generator, self.aggregator, self.registry)
        self.credentials = CredentialStore(session_factory, self.registry)
        self.schedule = ScheduleStore(session_factory)
        self.orchestrator = PublishOrchestrator(
            self.schedule,
            self.credentials,
            self.registry,
            max_retries=settings.publish_max_retries,
            retry_delays=settings.publish_retry_delays,
            deadline_seconds=settings.publish_deadline_seconds,
        )
        self.scheduler = SchedulerService(self.orchestrator, check_interval=settings.scheduler_check_interval)

    async def aclose(self):
        await self.scheduler.stop()
        await self.http_client.aclose()


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_team_id(x_team_id: Optional[str] = Header(None)) -> str:
    """Team scope for every request, from the X-Team-Id header."""
    if not x_team_id or not x_team_id.strip():
        raise HTTPException(status_code=400, detail="X-Team-Id header is required")
    return x_team_id.strip()
