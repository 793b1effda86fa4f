"""
Tests for structured logging.

Tests the processors that stamp, mask and clip entries, and log_context
binding and restoring contextvars.
"""

import json

import pytest
import structlog

from auraflow.config import settings
from auraflow.observability.logging import (
    MAX_FIELD_CHARS,
    REDACTED,
    add_app_context,
    build_processors,
    clip_long_text,
    log_context,
    redact_secrets,
)


class TestProcessors:
    """Tests for the custom processors."""

    def test_app_context_added(self):
        """Service and version are stamped on every entry."""
        entry = add_app_context(None, "info", {"event": "x"})
        assert entry["service"] == settings.service_name
        assert entry["version"] == settings.api_version

    def test_app_context_keeps_explicit_values(self):
        """A call site's own service value is kept."""
        entry = add_app_context(None, "info", {"event": "x", "service": "job"})
        assert entry["service"] == "job"

    def test_secrets_masked(self):
        """Credential fields are masked; other fields are untouched."""
        entry = redact_secrets(
            None,
            "info",
            {"event": "x", "api_key": "sk-live-123", "signature": "t=1,v1=abc", "user_id": "u1"},
        )
        assert entry["api_key"] == REDACTED
        assert entry["signature"] == REDACTED
        assert entry["user_id"] == "u1"

    def test_empty_secret_left_alone(self):
        """Empty credential fields show that nothing was configured."""
        entry = redact_secrets(None, "info", {"event": "x", "api_key": ""})
        assert entry["api_key"] == ""

    def test_long_content_clipped(self):
        """Generated text longer than the limit is shortened."""
        content = "calm " * 200
        entry = clip_long_text(None, "info", {"event": "x", "content": content})

        assert len(entry["content"]) < len(content)
        assert entry["content"].startswith(content[:MAX_FIELD_CHARS])
        assert entry["content"].endswith(f"({len(content)} chars)")

    def test_short_and_non_text_fields_kept(self):
        """Short strings and non-strings pass through."""
        entry = clip_long_text(None, "info", {"event": "x", "content": "Breathe.", "error": 42})
        assert entry["content"] == "Breathe."
        assert entry["error"] == 42

    def test_json_chain_renders(self):
        """The JSON chain renders a masked, stamped entry."""
        event_dict = {"event": "stripe_webhook_received", "signature": "t=1,v1=abc"}
        for processor in build_processors("json")[3:-1]:
            event_dict = processor(None, "info", event_dict)
        rendered = build_processors("json")[-1](None, "info", event_dict)

        body = json.loads(rendered)
        assert body["event"] == "stripe_webhook_received"
        assert body["signature"] == REDACTED
        assert body["service"] == settings.service_name
        assert "timestamp" in body


class TestLogContext:
    """Tests for log_context."""

    @pytest.fixture(autouse=True)
    def clean_context(self):
        structlog.contextvars.clear_contextvars()
        yield
        structlog.contextvars.clear_contextvars()

    def test_values_bound_inside_block(self):
        """Values are visible inside the block and gone after it."""
        with log_context(request_id="req-1"):
            assert structlog.contextvars.get_contextvars()["request_id"] == "req-1"
        assert "request_id" not in structlog.contextvars.get_contextvars()

    def test_outer_value_restored(self):
        """A nested block restores the enclosing value on exit."""
        with log_context(job="daily_drop_pregeneration", request_id="outer"):
            with log_context(request_id="inner"):
                assert structlog.contextvars.get_contextvars()["request_id"] == "inner"
            context = structlog.contextvars.get_contextvars()
            assert context["request_id"] == "outer"
            assert context["job"] == "daily_drop_pregeneration"
