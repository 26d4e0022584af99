"""Application entry point for the Vybe image generator."""

from __future__ import annotations

from typing import Optional

from vybegen.app import main as run_app


def main(config_path: Optional[str] = None) -> None:
    """Load configuration and launch the Gradio interface."""
    run_app(config_path)


if __name__ == "__main__":
    main()
