"""Generation lifecycle coordination."""

from __future__ import annotations

import asyncio
import functools
import logging
import uuid
from concurrent.futures import Executor, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, List, Optional, Protocol, Set

from vybegen.config.settings import DEFAULT_PROMPT
from vybegen.pipelines.generation_client import SubmittedCallback
from vybegen.pipelines.models import (
    GenerationMode,
    GenerationModel,
    GenerationRequest,
    GenerationStatus,
)
from vybegen.services.entitlement_gate import EntitlementGate
from vybegen.services.errors import (
    GenerationBusyError,
    GenerationError,
    InvalidImageError,
    InvalidPromptError,
    NoImageToSaveError,
    SaveFailedError,
    UnknownGenerationError,
)
from vybegen.services.history_service import HistoryEntry, HistoryStore
from vybegen.services.image_capture import ImageCaptureService

logger = logging.getLogger(__name__)

EVENT_STATUS = "status"
EVENT_PAYWALL = "paywall"
EVENT_HISTORY = "history"

Observer = Callable[[str, "GenerationOrchestrator"], None]


def create_history_executor() -> ThreadPoolExecutor:
    """Single worker thread that serializes history store I/O."""
    return ThreadPoolExecutor(max_workers=1, thread_name_prefix="vybegen-history")


class ImageGenerator(Protocol):
    """What the orchestrator needs from a generation client."""

    is_generating: bool

    def generate_from_image(
        self, source_image: bytes, prompt: str, on_submitted: Optional[SubmittedCallback] = None
    ) -> bytes:
        ...

    def generate_from_text(self, prompt: str, on_submitted: Optional[SubmittedCallback] = None) -> bytes:
        ...


class GenerationOrchestrator:
    """Drives one generation at a time and publishes its state.

    Every mutation observers can see happens on the event loop running the
    orchestrator coroutines. Network calls run in worker threads and history
    I/O runs on a dedicated single-thread executor, so index writes never
    interleave.
    """

    def __init__(
        self,
        client: ImageGenerator,
        gate: EntitlementGate,
        history: HistoryStore,
        image_capture: Optional[ImageCaptureService] = None,
        default_prompt: str = DEFAULT_PROMPT,
        io_executor: Optional[Executor] = None,
    ) -> None:
        self.client = client
        self.gate = gate
        self.history = history
        self.image_capture = image_capture
        self.default_prompt = default_prompt
        self.model = GenerationModel(prompt=default_prompt)
        self.show_paywall = False
        self.history_entries: List[HistoryEntry] = []
        self._observers: List[Observer] = []
        self._pending: Set["asyncio.Future[Any]"] = set()
        # Orchestrators sharing one HistoryStore must share this executor too.
        self._owns_executor = io_executor is None
        self._io_executor = io_executor or create_history_executor()

    # Observation ---------------------------------------------------------
    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer(event, orchestrator)``; returns an unsubscribe function."""
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def _notify(self, event: str) -> None:
        for observer in list(self._observers):
            try:
                observer(event, self)
            except Exception:  # noqa: BLE001
                logger.exception("Observer failed while handling %s event", event)

    # Model editing -------------------------------------------------------
    def _ensure_idle(self) -> None:
        if self.model.status.is_loading:
            raise GenerationBusyError("A generation is already in progress.")

    def set_source_image(self, image: Optional[bytes]) -> None:
        self._ensure_idle()
        self.model.source_image = image
        self._notify(EVENT_STATUS)

    def set_prompt(self, prompt: str) -> None:
        self._ensure_idle()
        self.model.prompt = prompt
        self._notify(EVENT_STATUS)

    def reset_generation(self) -> None:
        """Replace the current model with a fresh idle one."""
        self.model = GenerationModel(prompt=self.default_prompt)
        self._notify(EVENT_STATUS)

    def dismiss_paywall(self) -> None:
        self.show_paywall = False

    # Generation ----------------------------------------------------------
    async def generate(self) -> GenerationStatus:
        """Transform the model's source image with its prompt."""
        self._ensure_idle()
        model = self.model
        if model.source_image is None:
            model.mark_failed(InvalidImageError())
            self._notify(EVENT_STATUS)
            return model.status
        request = GenerationRequest(prompt=model.prompt, source_image=model.source_image)
        return await self._run(model, request)

    async def generate_from_text(self, prompt: Optional[str] = None) -> GenerationStatus:
        """Create an image from text only."""
        self._ensure_idle()
        model = self.model
        if prompt is not None:
            model.prompt = prompt
        if not model.prompt or not model.prompt.strip():
            model.mark_failed(InvalidPromptError())
            self._notify(EVENT_STATUS)
            return model.status
        return await self._run(model, GenerationRequest(prompt=model.prompt))

    def _call_client(self, request: GenerationRequest, on_submitted: SubmittedCallback) -> bytes:
        if request.mode is GenerationMode.EDIT:
            assert request.source_image is not None
            return self.client.generate_from_image(request.source_image, request.prompt, on_submitted=on_submitted)
        return self.client.generate_from_text(request.prompt, on_submitted=on_submitted)

    async def _run(self, model: GenerationModel, request: GenerationRequest) -> GenerationStatus:
        # One token per run: it reserves the quota unit, names the history
        # entry and is charged exactly once on success.
        run_id = str(uuid.uuid4())
        if not self.gate.reserve(run_id):
            logger.info("Generation blocked: no free generations left")
            self.show_paywall = True
            self._notify(EVENT_PAYWALL)
            return model.status
        try:
            return await self._execute(model, request, run_id)
        finally:
            self.gate.release(run_id)

    async def _execute(self, model: GenerationModel, request: GenerationRequest, run_id: str) -> GenerationStatus:
        model.mark_uploading()
        self._notify(EVENT_STATUS)
        loop = asyncio.get_running_loop()

        def _on_submitted() -> None:
            loop.call_soon_threadsafe(self._mark_processing, model)

        logger.info("Starting %s generation %s", request.mode.value, run_id)
        try:
            image = await asyncio.to_thread(self._call_client, request, _on_submitted)
        except GenerationError as exc:
            return self._apply_failure(model, exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected failure during generation")
            error = UnknownGenerationError()
            error.__cause__ = exc
            return self._apply_failure(model, error)

        if model is not self.model:
            logger.info("Discarding result for generation %s that was reset", run_id)
            return model.status

        model.mark_completed(image)
        self._notify(EVENT_STATUS)

        entry = HistoryEntry.create(
            image=image,
            prompt=request.prompt,
            source_image=request.source_image,
            created_at=request.created_at,
            entry_id=run_id,
        )
        self.history_entries.insert(0, entry)
        del self.history_entries[self.history.max_entries:]
        self._notify(EVENT_HISTORY)

        # The history write lands before the quota is charged.
        persisted = loop.run_in_executor(self._io_executor, self.history.append, entry)
        self._track(persisted)
        await asyncio.wait([persisted])

        self.gate.consume_one_free_generation(token=run_id)
        return model.status

    def _mark_processing(self, model: GenerationModel) -> None:
        if model is not self.model:
            return
        model.mark_processing()
        self._notify(EVENT_STATUS)

    def _apply_failure(self, model: GenerationModel, error: Exception) -> GenerationStatus:
        if model is not self.model:
            logger.info("Ignoring failure of generation %s that was reset: %s", model.model_id, error)
            return model.status
        logger.warning("Generation failed: %s", error)
        model.mark_failed(error)
        self._notify(EVENT_STATUS)
        return model.status

    # Background persistence ----------------------------------------------
    def _track(self, future: "asyncio.Future[Any]") -> None:
        self._pending.add(future)
        future.add_done_callback(self._on_persisted)

    def _on_persisted(self, future: "asyncio.Future[Any]") -> None:
        self._pending.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Background history write failed: %s", exc)
        elif future.result() is False:
            logger.warning("Generated image was not added to the persisted history")

    async def wait_for_pending(self) -> None:
        """Wait until queued history writes have finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _run_io(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._io_executor, functools.partial(func, *args))

    # History -------------------------------------------------------------
    async def load_history(self) -> List[HistoryEntry]:
        entries = await self._run_io(self.history.read_all)
        self.history_entries = entries
        self._notify(EVENT_HISTORY)
        return entries

    async def remove_from_history(self, entry: HistoryEntry) -> List[HistoryEntry]:
        await self._run_io(self.history.remove, entry)
        return await self.load_history()

    async def clear_history(self) -> List[HistoryEntry]:
        await self._run_io(self.history.clear)
        return await self.load_history()

    # Export --------------------------------------------------------------
    async def save_generated_image(self) -> Path:
        """Save the generated image to the photo library."""
        model = self.model
        if not model.status.can_download or model.generated_image is None:
            raise NoImageToSaveError()
        if self.image_capture is None:
            raise SaveFailedError("No photo library is configured.")
        return await asyncio.to_thread(self.image_capture.save_image_to_library, model.generated_image)

    def close(self) -> None:
        if self._owns_executor:
            self._io_executor.shutdown(wait=True)
