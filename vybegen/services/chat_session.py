"""Chat-style text-to-image conversation."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from vybegen.pipelines.models import StatusKind
from vybegen.services.orchestrator import GenerationOrchestrator

DEFAULT_ERROR = "Failed to generate image. Please try again."


@dataclass(slots=True)
class ChatMessage:
    text: str
    is_from_user: bool
    image: Optional[bytes] = field(default=None, repr=False)
    timestamp: float = field(default_factory=time.time)
    message_id: str = field(default_factory=lambda: uuid.uuid4().hex)


class ChatSession:
    """Each user message becomes one text-to-image generation."""

    def __init__(self, orchestrator: GenerationOrchestrator) -> None:
        self.orchestrator = orchestrator
        self.messages: List[ChatMessage] = []
        self.is_generating = False
        self.error_message: Optional[str] = None

    async def send_message(self, text: str) -> Optional[ChatMessage]:
        """Post ``text`` and return the assistant reply, if one was produced."""
        prompt = (text or "").strip()
        if not prompt:
            return None

        self.messages.append(ChatMessage(text=prompt, is_from_user=True))
        self.error_message = None
        self.is_generating = True
        try:
            self.orchestrator.reset_generation()
            status = await self.orchestrator.generate_from_text(prompt)
        finally:
            self.is_generating = False

        if status.kind is StatusKind.COMPLETED:
            reply = ChatMessage(
                text=f'Here\'s your generated image based on: "{prompt}"',
                is_from_user=False,
                image=self.orchestrator.model.generated_image,
            )
            self.messages.append(reply)
            return reply
        if status.is_failed:
            self.error_message = status.error_message or DEFAULT_ERROR
        return None

    def clear(self) -> None:
        self.messages.clear()
        self.error_message = None
