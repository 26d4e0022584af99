"""Offline stand-in for the generation API used when mock mode is on."""

from __future__ import annotations

import hashlib
import random
import time
from typing import Optional, Tuple

from PIL import Image, ImageChops, ImageDraw, ImageEnhance, ImageFilter

from vybegen.pipelines.generation_client import SubmittedCallback
from vybegen.services.errors import InvalidImageError, InvalidPromptError
from vybegen.utils.image_utils import decode_image, to_bytes

Color = Tuple[int, int, int]

# (keywords, background, foreground)
_THEMES: list[tuple[tuple[str, ...], Color, Color]] = [
    (("sunset", "orange", "warm"), (230, 153, 77), (204, 77, 26)),
    (("ocean", "blue", "water"), (77, 128, 230), (26, 77, 179)),
    (("forest", "green", "nature"), (77, 204, 102), (26, 128, 51)),
    (("night", "dark", "space"), (26, 26, 77), (77, 77, 153)),
    (("fire", "red", "hot"), (230, 77, 51), (179, 26, 26)),
]
_DEFAULT_THEME: tuple[Color, Color] = ((128, 77, 230), (77, 26, 179))


def _theme_for(prompt: str) -> tuple[Color, Color]:
    lowered = prompt.lower()
    for keywords, background, foreground in _THEMES:
        if any(word in lowered for word in keywords):
            return background, foreground
    return _DEFAULT_THEME


def _seed_for(prompt: str) -> int:
    return int(hashlib.sha256(prompt.encode("utf-8")).hexdigest()[:8], 16)


class DemoGenerationClient:
    """Produces deterministic local images with the GenerationClient interface."""

    def __init__(self, delay: float = 0.0, size: int = 1024) -> None:
        self.delay = delay
        self.size = size
        self.is_generating = False

    def generate_from_image(
        self,
        source_image: bytes,
        prompt: str,
        on_submitted: Optional[SubmittedCallback] = None,
    ) -> bytes:
        self.is_generating = True
        try:
            _ensure_prompt(prompt)
            try:
                image = decode_image(source_image).convert("RGB")
            except ValueError as exc:
                raise InvalidImageError() from exc
            self._wait(on_submitted)
            return to_bytes(self._stylize(image), fmt="PNG")
        finally:
            self.is_generating = False

    def generate_from_text(
        self,
        prompt: str,
        on_submitted: Optional[SubmittedCallback] = None,
    ) -> bytes:
        self.is_generating = True
        try:
            _ensure_prompt(prompt)
            self._wait(on_submitted)
            return to_bytes(self._render(prompt), fmt="PNG")
        finally:
            self.is_generating = False

    def _wait(self, on_submitted: Optional[SubmittedCallback]) -> None:
        if self.delay:
            time.sleep(self.delay / 2)
        if on_submitted is not None:
            on_submitted()
        if self.delay:
            time.sleep(self.delay / 2)

    @staticmethod
    def _stylize(image: Image.Image) -> Image.Image:
        """Vignette, punchier colors and a light sharpen."""
        image = ImageEnhance.Color(image).enhance(1.2)
        image = ImageEnhance.Contrast(image).enhance(1.1)
        image = image.filter(ImageFilter.UnsharpMask(radius=2, percent=50))

        width, height = image.size
        mask = Image.new("L", (width, height), 0)
        draw = ImageDraw.Draw(mask)
        inset_x, inset_y = width // 8, height // 8
        draw.ellipse((-inset_x, -inset_y, width + inset_x, height + inset_y), fill=255)
        mask = mask.filter(ImageFilter.GaussianBlur(radius=max(width, height) // 10 or 1))
        shade = Image.new("RGB", (width, height), (0, 0, 0))
        return ImageChops.composite(image, shade, mask)

    def _render(self, prompt: str) -> Image.Image:
        size = self.size
        background, foreground = _theme_for(prompt)

        gradient = Image.linear_gradient("L").rotate(45, expand=False).resize((size, size))
        image = Image.composite(
            Image.new("RGB", (size, size), foreground),
            Image.new("RGB", (size, size), background),
            gradient,
        )

        overlay = Image.new("RGBA", (size, size), (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        rng = random.Random(_seed_for(prompt))
        lowered = prompt.lower()
        for index in range(30):
            shape_size = rng.randint(size // 50 + 1, size // 7 + 2)
            x = rng.randint(0, size - shape_size)
            y = rng.randint(0, size - shape_size)
            fill = (255, 255, 255, rng.randint(25, 180))
            box = (x, y, x + shape_size, y + shape_size)
            if "circle" in lowered or "round" in lowered or index % 3 == 0:
                draw.ellipse(box, fill=fill)
            elif "square" in lowered or "box" in lowered or index % 3 == 1:
                draw.rectangle(box, fill=fill)
            else:
                draw.polygon(
                    [(x + shape_size // 2, y), (x, y + shape_size), (x + shape_size, y + shape_size)],
                    fill=fill,
                )

        caption = prompt if len(prompt) <= 50 else prompt[:50] + "..."
        draw.text((size // 50, size - size // 10), f"AI Image: {caption}", fill=(255, 255, 255, 204))
        return Image.alpha_composite(image.convert("RGBA"), overlay).convert("RGB")


def _ensure_prompt(prompt: str) -> None:
    if not prompt or not prompt.strip():
        raise InvalidPromptError()
