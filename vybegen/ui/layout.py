"""Gradio layout composition."""

from __future__ import annotations

from typing import Any

import gradio as gr

from vybegen.app import AppServices
from vybegen.services.entitlement_gate import SubscriptionTier
from vybegen.ui.callbacks import build_callbacks


def _plan_choices() -> list[tuple[str, str]]:
    return [
        (f"{tier.title} ({tier.price}): {tier.description}", tier.value)
        for tier in SubscriptionTier
        if tier.is_paid
    ]


def build_app(services: AppServices) -> Any:
    """Compose and return the Gradio application."""
    callbacks_map = build_callbacks(services)
    plans = _plan_choices()

    with gr.Blocks(title="Vybe AI") as demo:
        gr.Markdown("## Vybe AI")
        quota = gr.Markdown(callbacks_map["quota_text"]())

        with gr.Tab("Transform"):
            with gr.Row():
                with gr.Column():
                    init_image = gr.Image(label="Your photo", type="pil", sources=["upload", "webcam"])
                    prompt = gr.Textbox(
                        label="Prompt",
                        lines=3,
                        value=services.transform.default_prompt,
                    )
                    with gr.Row():
                        generate_btn = gr.Button("Generate", variant="primary")
                        reset_btn = gr.Button("Start over")

                with gr.Column():
                    output_image = gr.Image(label="Result", type="pil")
                    status = gr.Markdown("Ready.")
                    save_btn = gr.Button("Save to photos")

            generate_btn.click(
                fn=callbacks_map["on_generate_image"],
                inputs=[init_image, prompt],
                outputs=[output_image, status, quota],
                concurrency_limit=1,
                concurrency_id="generation",
            )
            reset_btn.click(
                fn=callbacks_map["on_reset"],
                inputs=[],
                outputs=[init_image, output_image, prompt, status],
            )
            save_btn.click(fn=callbacks_map["on_save_image"], inputs=[], outputs=[status])

        with gr.Tab("Chat"):
            with gr.Row():
                with gr.Column():
                    chat_log = gr.Markdown()
                    chat_input = gr.Textbox(label="Describe an image", lines=2)
                    with gr.Row():
                        send_btn = gr.Button("Send", variant="primary")
                        clear_chat_btn = gr.Button("Clear")
                with gr.Column():
                    chat_image = gr.Image(label="Latest image", type="pil")
                    chat_status = gr.Markdown()

            send_btn.click(
                fn=callbacks_map["on_chat_send"],
                inputs=[chat_input],
                outputs=[chat_log, chat_image, chat_status, chat_input],
                concurrency_limit=1,
                concurrency_id="generation",
            )
            clear_chat_btn.click(
                fn=callbacks_map["on_chat_clear"],
                inputs=[],
                outputs=[chat_log, chat_image, chat_status],
            )

        with gr.Tab("History"):
            gallery = gr.Gallery(label="Past generations", columns=4)
            history_status = gr.Markdown()
            selected = gr.Number(label="Selected index", precision=0, visible=False)
            with gr.Row():
                refresh_btn = gr.Button("Refresh")
                delete_btn = gr.Button("Delete selected")
                clear_btn = gr.Button("Clear history", variant="stop")

            def _on_select(event: gr.SelectData) -> int:
                return event.index

            gallery.select(fn=_on_select, inputs=None, outputs=[selected])
            refresh_btn.click(fn=callbacks_map["on_load_history"], inputs=[], outputs=[gallery, history_status])
            delete_btn.click(
                fn=callbacks_map["on_remove_history"],
                inputs=[selected],
                outputs=[gallery, history_status],
            )
            clear_btn.click(fn=callbacks_map["on_clear_history"], inputs=[], outputs=[gallery, history_status])

        with gr.Tab("Premium"):
            plan = gr.Radio(label="Choose a plan", choices=plans, value=plans[0][1] if plans else None)
            with gr.Row():
                buy_btn = gr.Button("Subscribe", variant="primary")
                restore_btn = gr.Button("Restore purchases")
            purchase_status = gr.Markdown()

            buy_btn.click(
                fn=callbacks_map["on_purchase"],
                inputs=[plan],
                outputs=[purchase_status, quota],
                concurrency_limit=1,
            )
            restore_btn.click(
                fn=callbacks_map["on_restore"],
                inputs=[],
                outputs=[purchase_status, quota],
                concurrency_limit=1,
            )

        demo.load(fn=callbacks_map["on_load_history"], inputs=[], outputs=[gallery, history_status])

    return demo
