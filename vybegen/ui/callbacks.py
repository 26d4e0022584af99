"""Callback implementations for the Gradio interface."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

from vybegen.app import AppServices
from vybegen.pipelines.models import StatusKind
from vybegen.services.entitlement_gate import SubscriptionTier
from vybegen.services.errors import GenerationBusyError, SaveError
from vybegen.services.history_service import HistoryEntry
from vybegen.utils.image_utils import decode_image, generate_thumbnail, to_bytes

PAYWALL_MESSAGE = "You've used all your free generations. Upgrade to keep creating."


def build_callbacks(services: AppServices) -> Dict[str, Callable[..., Any]]:
    """Return a dictionary of Gradio callback functions."""

    transform = services.transform
    chat = services.chat
    gate = services.gate

    def _to_pil(data: Optional[bytes]) -> Optional[Any]:
        if not data:
            return None
        try:
            return decode_image(data)
        except ValueError:
            return None

    def _to_bytes(image: Any) -> Optional[bytes]:
        if image is None:
            return None
        return to_bytes(image, fmt="PNG")

    def quota_text() -> str:
        if gate.is_subscribed:
            return f"**{gate.tier.title}**: unlimited generations"
        return f"Free generations remaining: **{gate.generations_remaining}**"

    def _gallery(entries: List[HistoryEntry]) -> List[Tuple[Any, str]]:
        items: List[Tuple[Any, str]] = []
        for entry in entries:
            try:
                items.append((generate_thumbnail(entry.image), entry.prompt))
            except ValueError:
                continue
        return items

    async def on_generate_image(init_image: Any, prompt: str) -> tuple[Optional[Any], str, str]:
        if init_image is None:
            return None, "Please choose a photo first.", quota_text()
        try:
            transform.reset_generation()
            transform.set_source_image(_to_bytes(init_image))
            transform.set_prompt((prompt or "").strip() or transform.default_prompt)
            status = await transform.generate()
        except GenerationBusyError as exc:
            return None, str(exc), quota_text()

        if transform.show_paywall:
            transform.dismiss_paywall()
            return None, PAYWALL_MESSAGE, quota_text()
        if status.kind is StatusKind.COMPLETED:
            return _to_pil(transform.model.generated_image), "Generation complete.", quota_text()
        return None, f"Generation failed: {status.error_message}", quota_text()

    def on_reset() -> tuple[None, None, str, str]:
        transform.reset_generation()
        return None, None, transform.default_prompt, "Ready."

    async def on_save_image() -> str:
        try:
            path = await transform.save_generated_image()
        except SaveError as exc:
            return f"Save failed: {exc}"
        return f"Saved to {path}"

    async def on_chat_send(text: str) -> tuple[str, Optional[Any], str, str]:
        if chat.orchestrator.model.status.is_loading:
            return _render_chat(), None, "Still working on the previous image…", text
        reply = await chat.send_message(text)
        if chat.orchestrator.show_paywall:
            chat.orchestrator.dismiss_paywall()
            return _render_chat(), None, PAYWALL_MESSAGE, ""
        if reply is None:
            return _render_chat(), None, chat.error_message or "", ""
        return _render_chat(), _to_pil(reply.image), quota_text(), ""

    def _render_chat() -> str:
        lines = []
        for message in chat.messages:
            speaker = "You" if message.is_from_user else "Vybe"
            lines.append(f"**{speaker}:** {message.text}")
        return "\n\n".join(lines)

    def on_chat_clear() -> tuple[str, None, str]:
        chat.clear()
        return "", None, ""

    async def on_load_history() -> tuple[List[Tuple[Any, str]], str]:
        entries = await transform.load_history()
        return _gallery(entries), f"{len(entries)} saved generation(s)."

    async def on_remove_history(index: Any) -> tuple[List[Tuple[Any, str]], str]:
        entries = transform.history_entries
        try:
            position = int(index)
        except (TypeError, ValueError):
            return _gallery(entries), "Select an image to delete."
        if not 0 <= position < len(entries):
            return _gallery(entries), "Select an image to delete."
        entries = await transform.remove_from_history(entries[position])
        return _gallery(entries), "Deleted."

    async def on_clear_history() -> tuple[List[Tuple[Any, str]], str]:
        entries = await transform.clear_history()
        return _gallery(entries), "History cleared."

    async def on_purchase(tier_name: str) -> tuple[str, str]:
        if gate.purchase_in_progress:
            return "A purchase is already in progress.", quota_text()
        try:
            tier = SubscriptionTier(tier_name)
        except ValueError:
            return "Choose a plan first.", quota_text()
        if await gate.purchase(tier):
            return f"Welcome to {tier.title}!", quota_text()
        return gate.error_message or "Purchase was not completed.", quota_text()

    async def on_restore() -> tuple[str, str]:
        if gate.purchase_in_progress:
            return "A purchase is already in progress.", quota_text()
        if await gate.restore():
            return "Purchases restored.", quota_text()
        return gate.error_message or "Nothing to restore.", quota_text()

    return {
        "quota_text": quota_text,
        "on_generate_image": on_generate_image,
        "on_reset": on_reset,
        "on_save_image": on_save_image,
        "on_chat_send": on_chat_send,
        "on_chat_clear": on_chat_clear,
        "on_load_history": on_load_history,
        "on_remove_history": on_remove_history,
        "on_clear_history": on_clear_history,
        "on_purchase": on_purchase,
        "on_restore": on_restore,
    }
