"""Image URL synthesis for ``/imagine`` requests."""

from __future__ import annotations

import random
from urllib.parse import quote, urlencode

IMAGINE_PREFIX = "/imagine"
MAX_SEED = 1_000_000


def is_image_request(text: str) -> bool:
    return text.startswith(IMAGINE_PREFIX)


def extract_prompt(text: str) -> str:
    """Strip the ``/imagine`` prefix and surrounding whitespace."""
    if text.startswith(IMAGINE_PREFIX):
        text = text[len(IMAGINE_PREFIX):]
    return text.strip()


def random_seed(rng: random.Random | None = None) -> int:
    return (rng or random).randrange(MAX_SEED)


def build_image_url(
    prompt: str,
    width: int,
    height: int,
    seed: int,
    base_url: str = "https://image.pollinations.ai/prompt/",
) -> str:
    """Return a fetchable image URL; the image is rendered when it is fetched."""
    query = urlencode({"width": width, "height": height, "seed": seed, "nologo": "true"})
    return f"{base_url}{quote(prompt, safe='')}?{query}"


def image_markdown(url: str) -> str:
    return f"![Image]({url})"
