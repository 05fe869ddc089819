"""Summary: Application factory wiring core services.

Importance: Centralizes dependency creation for the CLI and API layers.
Alternatives: Instantiate services manually in each entrypoint.
"""

from __future__ import annotations

from dataclasses import dataclass

from classpulse.config import AppConfig
from classpulse.gmail import GmailMailProvider, MailProvider
from classpulse.services import CaseNoteService, CommunicationStatsService, ProviderFactory
from classpulse.storage.case_notes import (
    CaseNoteStore,
    RingBufferCaseNoteStore,
    SqliteCaseNoteStore,
)


@dataclass(frozen=True)
class AppServices:
    """Summary: Bundle of core services for ClassPulse.

    Importance: Simplifies passing dependencies to UI or API layers.
    Alternatives: Use a dependency injection container.
    """

    communication: CommunicationStatsService
    case_notes: CaseNoteService
    config: AppConfig


def gmail_provider_factory(config: AppConfig) -> ProviderFactory:
    """Summary: Build a factory that creates one Gmail provider per bearer token.

    Importance: Each request gets its own semaphore and HTTP session.
    Alternatives: Share a global client keyed by token.
    """

    def _factory(access_token: str) -> MailProvider:
        return GmailMailProvider(
            access_token=access_token,
            base_url=config.gmail_base_url,
            max_concurrency=config.max_concurrency,
            timeout_seconds=config.request_timeout,
            max_retries=config.max_retries,
            retry_base_delay=config.retry_base_delay,
            retry_max_delay=config.retry_max_delay,
        )

    return _factory


def build_case_note_store(config: AppConfig) -> CaseNoteStore:
    if config.case_note_backend == "sqlite":
        store = SqliteCaseNoteStore(config.db_path, capacity=config.case_note_capacity)
        store.initialize()
        return store
    if config.case_note_backend == "memory":
        return RingBufferCaseNoteStore(capacity=config.case_note_capacity)
    raise ValueError(f"Unknown case note backend: {config.case_note_backend}")


def build_services(
    config: AppConfig, provider_factory: ProviderFactory | None = None
) -> AppServices:
    """Summary: Build core services from configuration.

    Importance: Provides a single construction path for the application.
    Alternatives: Instantiate services directly within the CLI entrypoint.
    """

    communication = CommunicationStatsService(
        provider_factory=provider_factory or gmail_provider_factory(config),
        domains=tuple(config.student_domains),
        default_window_days=config.default_window_days,
        page_size=config.page_size,
        daily_page_size=config.daily_page_size,
        thread_limit=config.thread_limit,
        tz=config.zone(),
    )
    case_notes = CaseNoteService(store=build_case_note_store(config))
    return AppServices(communication=communication, case_notes=case_notes, config=config)
