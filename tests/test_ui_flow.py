"""End-to-end callback flows without launching Gradio."""

from __future__ import annotations

import asyncio

import pytest
from PIL import Image

from helpers import StubGenerator, encode_image
from vybegen.app import build_services
from vybegen.config.settings import AppConfig
from vybegen.services.entitlement_gate import SimulatedBilling
from vybegen.services.errors import RateLimitedError
from vybegen.ui.callbacks import PAYWALL_MESSAGE, build_callbacks

RESULT = encode_image((30, 60, 90), size=(16, 16))


@pytest.fixture
def app_env(tmp_path):
    created = []

    def _make(client=None, free_generations=3):
        config = AppConfig(data_dir=tmp_path, log_dir=tmp_path / "logs", free_generations=free_generations)
        services = build_services(
            config,
            client=client or StubGenerator(result=RESULT),
            billing=SimulatedBilling(delay=0),
        )
        created.append(services)
        return services, build_callbacks(services)

    yield _make
    for services in created:
        services.close()


def run(services, coro):
    async def _runner():
        try:
            return await coro
        finally:
            await services.transform.wait_for_pending()
            await services.chat.orchestrator.wait_for_pending()

    return asyncio.run(_runner())


def photo() -> Image.Image:
    return Image.new("RGB", (16, 16), (255, 0, 0))


def test_transform_flow_updates_quota_and_history(app_env):
    services, callbacks = app_env()

    image, message, quota = run(services, callbacks["on_generate_image"](photo(), "neon portrait"))

    assert isinstance(image, Image.Image)
    assert message == "Generation complete."
    assert quota == "Free generations remaining: **2**"

    gallery, status = run(services, callbacks["on_load_history"]())
    assert len(gallery) == 1
    assert gallery[0][1] == "neon portrait"
    assert status == "1 saved generation(s)."


def test_blank_prompt_uses_default(app_env):
    client = StubGenerator(result=RESULT)
    services, callbacks = app_env(client=client)

    run(services, callbacks["on_generate_image"](photo(), "  "))

    assert client.calls[0][2] == services.config.default_prompt


def test_missing_photo_is_reported(app_env):
    services, callbacks = app_env()

    image, message, _ = run(services, callbacks["on_generate_image"](None, "prompt"))

    assert image is None
    assert message == "Please choose a photo first."


def test_failure_message_is_shown(app_env):
    services, callbacks = app_env(client=StubGenerator(error=RateLimitedError()))

    image, message, quota = run(services, callbacks["on_generate_image"](photo(), "prompt"))

    assert image is None
    assert message == f"Generation failed: {RateLimitedError.default_message}"
    assert quota == "Free generations remaining: **3**"


def test_paywall_then_purchase_unlocks(app_env):
    services, callbacks = app_env(free_generations=0)

    _, message, _ = run(services, callbacks["on_generate_image"](photo(), "prompt"))
    assert message == PAYWALL_MESSAGE
    assert services.transform.show_paywall is False

    status, quota = run(services, callbacks["on_purchase"]("lifetime"))
    assert status == "Welcome to Lifetime Access!"
    assert quota == "**Lifetime Access**: unlimited generations"

    image, message, _ = run(services, callbacks["on_generate_image"](photo(), "prompt"))
    assert image is not None


def test_purchase_requires_plan(app_env):
    services, callbacks = app_env()

    status, _ = run(services, callbacks["on_purchase"](None))

    assert status == "Choose a plan first."


def test_restore_without_purchase(app_env):
    services, callbacks = app_env()

    status, _ = run(services, callbacks["on_restore"]())

    assert status == "No previous purchases found."


def test_chat_and_transform_share_quota_and_history(app_env):
    services, callbacks = app_env()

    log, image, status, cleared = run(services, callbacks["on_chat_send"]("a paper boat"))
    assert "**You:** a paper boat" in log
    assert image is not None
    assert cleared == ""

    run(services, callbacks["on_generate_image"](photo(), "neon"))

    assert services.gate.generations_remaining == 1
    assert len(services.history.read_all()) == 2

    assert callbacks["on_chat_clear"]() == ("", None, "")


def test_save_and_reset(app_env, tmp_path):
    services, callbacks = app_env()

    assert run(services, callbacks["on_save_image"]()) == "Save failed: No image available to save"

    run(services, callbacks["on_generate_image"](photo(), "prompt"))
    message = run(services, callbacks["on_save_image"]())
    assert message.startswith("Saved to ")
    assert str(tmp_path / "photos") in message

    assert callbacks["on_reset"]() == (None, None, services.config.default_prompt, "Ready.")


def test_remove_and_clear_history(app_env):
    services, callbacks = app_env()
    for prompt in ("one", "two"):
        run(services, callbacks["on_generate_image"](photo(), prompt))
    run(services, callbacks["on_load_history"]())

    gallery, status = run(services, callbacks["on_remove_history"](0))
    assert status == "Deleted."
    assert [caption for _, caption in gallery] == ["one"]

    gallery, status = run(services, callbacks["on_remove_history"](None))
    assert status == "Select an image to delete."

    gallery, status = run(services, callbacks["on_clear_history"]())
    assert gallery == []
    assert status == "History cleared."
