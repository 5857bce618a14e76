"""Tests for image request parsing and URL synthesis."""

import random
from urllib.parse import parse_qs, urlparse

from gemchat.ai.images import (
    build_image_url,
    extract_prompt,
    image_markdown,
    is_image_request,
    random_seed,
)


def test_image_request_detection():
    assert is_image_request("/imagine a red fox")
    assert not is_image_request("please /imagine a red fox")
    assert not is_image_request(" /imagine a red fox")


def test_extract_prompt_strips_prefix_and_whitespace():
    assert extract_prompt("/imagine   a red fox  ") == "a red fox"
    assert extract_prompt("/imagine") == ""


def test_build_image_url_encodes_prompt_and_dimensions():
    url = build_image_url("a red fox", 1024, 768, 42)
    parsed = urlparse(url)
    assert parsed.netloc == "image.pollinations.ai"
    assert parsed.path.endswith("/a%20red%20fox")
    query = parse_qs(parsed.query)
    assert query["width"] == ["1024"]
    assert query["height"] == ["768"]
    assert query["seed"] == ["42"]


def test_build_image_url_encodes_slashes():
    url = build_image_url("cats/dogs?", 512, 512, 1, base_url="https://img.example/p/")
    assert url.startswith("https://img.example/p/cats%2Fdogs%3F?")


def test_seed_is_reproducible_with_rng():
    assert random_seed(random.Random(7)) == random_seed(random.Random(7))


def test_image_markdown():
    assert image_markdown("https://x/y") == "![Image](https://x/y)"
