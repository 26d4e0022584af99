"""Service composition and application entry point."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from vybegen.config.settings import AppConfig, load_config
from vybegen.pipelines.demo_client import DemoGenerationClient
from vybegen.pipelines.generation_client import GenerationClient
from vybegen.services.chat_session import ChatSession
from vybegen.services.entitlement_gate import BillingProvider, EntitlementGate, SimulatedBilling
from vybegen.services.history_service import HistoryStore
from vybegen.services.image_capture import LocalPhotoLibrary
from vybegen.services.orchestrator import (
    GenerationOrchestrator,
    ImageGenerator,
    create_history_executor,
)
from vybegen.services.preferences import PreferenceStore
from vybegen.services.storage_service import StorageService
from vybegen.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AppServices:
    """Everything the UI layer talks to, owned for the process lifetime."""

    config: AppConfig
    preferences: PreferenceStore
    gate: EntitlementGate
    history: HistoryStore
    photo_library: LocalPhotoLibrary
    transform: GenerationOrchestrator
    chat: ChatSession
    io_executor: ThreadPoolExecutor

    def close(self) -> None:
        self.transform.close()
        self.chat.orchestrator.close()
        self.io_executor.shutdown(wait=True)


def build_client(config: AppConfig) -> ImageGenerator:
    if config.use_mock:
        logger.info("Using the offline demo image generator")
        return DemoGenerationClient(delay=config.mock_delay)
    return GenerationClient.from_config(config)


def build_services(
    config: AppConfig,
    client: Optional[ImageGenerator] = None,
    billing: Optional[BillingProvider] = None,
) -> AppServices:
    """Create the shared stores and one orchestrator per screen."""
    preferences = PreferenceStore(config.preferences_path)
    storage = StorageService(config.history_dir)
    history = HistoryStore(preferences, storage, max_entries=config.history_limit)
    gate = EntitlementGate(
        preferences,
        billing=billing or SimulatedBilling(delay=config.mock_delay),
        free_generations=config.free_generations,
    )
    photo_library = LocalPhotoLibrary(config.photo_library_dir)
    io_executor = create_history_executor()

    removed = history.prune_orphans()
    if removed:
        logger.info("Cleaned up %d orphaned history files", removed)

    client = client or build_client(config)
    transform = GenerationOrchestrator(
        client,
        gate,
        history,
        image_capture=photo_library,
        default_prompt=config.default_prompt,
        io_executor=io_executor,
    )
    chat_orchestrator = GenerationOrchestrator(
        client,
        gate,
        history,
        image_capture=photo_library,
        default_prompt="",
        io_executor=io_executor,
    )
    return AppServices(
        config=config,
        preferences=preferences,
        gate=gate,
        history=history,
        photo_library=photo_library,
        transform=transform,
        chat=ChatSession(chat_orchestrator),
        io_executor=io_executor,
    )


def main(config_path: Optional[str] = None) -> None:
    """Load configuration and launch the Gradio interface."""
    config = load_config(config_path)
    setup_logging(config)

    from vybegen.ui.layout import build_app

    services = build_services(config)
    app = build_app(services)
    app.queue()
    try:
        app.launch(share=False, inbrowser=False)
    finally:
        services.close()


if __name__ == "__main__":
    main()
