"""
Tests for cache key generation.
"""

import pytest

from response_cache.models import CacheContext
from response_cache.services import CacheKeyGenerator, detect_file_type


@pytest.fixture
def keys():
    """Create a key generator."""
    return CacheKeyGenerator()


def test_key_is_sha256_hex(keys):
    """Keys are 64-character hex digests."""
    key = keys.generate("How do I center a div?", {"language": "css"})
    assert len(key) == 64
    int(key, 16)


def test_key_is_deterministic(keys):
    """Same query and context always give the same key."""
    first = keys.generate("How do I center a div?", {"language": "css"})
    second = CacheKeyGenerator().generate("How do I center a div?", {"language": "css"})
    assert first == second


def test_case_and_surrounding_whitespace_ignored(keys):
    """Query normalization lowercases and trims."""
    assert keys.generate("  How Do I Center A Div?  ", {"language": "css"}) == keys.generate(
        "how do i center a div?", {"language": "css"}
    )


def test_punctuation_is_significant(keys):
    """Only case and outer whitespace are normalized for keys."""
    assert keys.generate("how do i center a div?", {}) != keys.generate("how do i center a div", {})


@pytest.mark.parametrize(
    "attribute, value",
    [
        ("projectType", "web"),
        ("language", "python"),
        ("framework", "react"),
        ("taskType", "debugging"),
        ("skillLevel", "beginner"),
        ("aiModel", "gpt"),
        ("fileType", "style"),
    ],
)
def test_each_context_attribute_changes_key(keys, attribute, value):
    """Changing any tracked attribute produces a different key."""
    assert keys.generate("same query", {attribute: value}) != keys.generate("same query", {})


def test_framework_distinguishes_keys(keys):
    """React and Vue variants of one question are separate entries."""
    react = keys.generate("How do I manage state?", {"framework": "react"})
    vue = keys.generate("How do I manage state?", {"framework": "vue"})
    assert react != vue


def test_untracked_attributes_do_not_change_key(keys):
    """Session id and response time are not part of the key."""
    base = keys.generate("q", {"language": "go"})
    assert keys.generate("q", {"language": "go", "sessionId": "abc", "responseTime": 12.5}) == base


def test_explicit_defaults_match_missing_attributes(keys):
    """Absent attributes are filled with their defaults."""
    explicit = {
        "projectType": "unknown",
        "language": "unknown",
        "framework": "unknown",
        "taskType": "general",
        "skillLevel": "intermediate",
        "aiModel": "default",
    }
    assert keys.generate("q", explicit) == keys.generate("q", None)


def test_camel_and_snake_case_context_equivalent(keys):
    """Mappings, snake_case models and camelCase dicts give the same key."""
    camel = keys.generate("q", {"projectType": "api", "taskType": "review"})
    snake = keys.generate("q", CacheContext(project_type="api", task_type="review"))
    assert camel == snake


def test_file_context_resolves_file_type(keys):
    """A file context is reduced to its file-type category."""
    ctx = keys.canonical_context({"fileContext": "src/components/Button.tsx"})
    assert ctx["fileType"] == "react"
    assert keys.generate("q", {"fileContext": "a/App.tsx"}) == keys.generate("q", {"fileContext": "b/Nav.jsx"})


@pytest.mark.parametrize(
    "file_context, expected",
    [
        ("package.json", "config"),
        ("Dockerfile", "docker"),
        ("src/App.test.tsx", "test"),
        ("api.spec.ts", "test"),
        ("README.md", "documentation"),
        ("styles/main.scss", "style"),
        ("Home.vue", "vue"),
        ("server.ts", "typescript"),
        ("index.js", "javascript"),
        ("main.py", "python"),
        ("lib.rs", "rust"),
        ("Makefile", "code"),
    ],
)
def test_detect_file_type(file_context, expected):
    """File names map to coarse categories, first pattern wins."""
    assert detect_file_type(file_context) == expected
