"""Manual script to verify the image API key and endpoints work."""

from __future__ import annotations

import argparse
from pathlib import Path

from vybegen.config.settings import load_config
from vybegen.pipelines.generation_client import GenerationClient
from vybegen.services.errors import GenerationError


def main() -> int:
    parser = argparse.ArgumentParser(description="Run one real generation against the configured API.")
    parser.add_argument("prompt", help="Prompt text.")
    parser.add_argument("--source", type=Path, help="Optional photo to edit instead of text-to-image.")
    parser.add_argument("--out", type=Path, default=Path("manual_check_output.png"))
    args = parser.parse_args()

    config = load_config()  # reads .env into os.environ
    if not config.openai_key:
        print("[error] OPENAI_API_KEY not set; check .env or environment variables.")
        return 1

    client = GenerationClient.from_config(config)
    try:
        if args.source:
            image = client.generate_from_image(
                args.source.read_bytes(),
                args.prompt,
                on_submitted=lambda: print("Request accepted, downloading result..."),
            )
        else:
            image = client.generate_from_text(
                args.prompt,
                on_submitted=lambda: print("Request accepted, downloading result..."),
            )
    except GenerationError as exc:
        print(f"[error] {type(exc).__name__}: {exc}")
        return 2

    args.out.write_bytes(image)
    print("Image saved:", args.out.resolve())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
