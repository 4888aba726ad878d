"""
tests/test_sinks.py — Unit tests for completion sinks.

All HTTP calls are mocked — no real network traffic.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from qualifier.errors import SubmissionError
from qualifier.flow.sinks import WebhookCompletionSink, fan_out

PAYLOAD = {"q1": "urgent", "_metadata": {"session_id": "s-1"}}


class TestWebhookCompletionSink:
    def test_requires_url(self):
        with patch("qualifier.flow.sinks.settings") as mock_settings:
            mock_settings.completion_webhook_url = None
            with pytest.raises(ValueError):
                WebhookCompletionSink()

    def test_posts_json(self):
        sink = WebhookCompletionSink(url="https://hooks.example.com/leads", timeout=3)
        with patch("qualifier.flow.sinks.requests.post") as mock_post:
            mock_post.return_value = MagicMock(status_code=200)
            sink(PAYLOAD)
        mock_post.assert_called_once_with("https://hooks.example.com/leads", json=PAYLOAD, timeout=3)

    def test_retries_then_raises_submission_error(self):
        sink = WebhookCompletionSink(url="https://hooks.example.com/leads")
        with patch("qualifier.flow.sinks.requests.post") as mock_post, patch("time.sleep"):
            mock_post.side_effect = requests.ConnectionError("refused")
            with pytest.raises(SubmissionError):
                sink(PAYLOAD)
        assert mock_post.call_count == 3

    def test_recovers_after_transient_error(self):
        sink = WebhookCompletionSink(url="https://hooks.example.com/leads")
        with patch("qualifier.flow.sinks.requests.post") as mock_post, patch("time.sleep"):
            mock_post.side_effect = [requests.Timeout("slow"), MagicMock(status_code=200)]
            sink(PAYLOAD)
        assert mock_post.call_count == 2

    def test_client_error_is_not_retried(self):
        sink = WebhookCompletionSink(url="https://hooks.example.com/leads")
        rejected = MagicMock(status_code=400)
        rejected.raise_for_status.side_effect = requests.HTTPError("400 Bad Request", response=rejected)
        with patch("qualifier.flow.sinks.requests.post") as mock_post, patch("time.sleep"):
            mock_post.return_value = rejected
            with pytest.raises(SubmissionError):
                sink(PAYLOAD)
        assert mock_post.call_count == 1

    def test_server_error_is_retried(self):
        sink = WebhookCompletionSink(url="https://hooks.example.com/leads")
        unavailable = MagicMock(status_code=503)
        unavailable.raise_for_status.side_effect = requests.HTTPError("503", response=unavailable)
        with patch("qualifier.flow.sinks.requests.post") as mock_post, patch("time.sleep"):
            mock_post.side_effect = [unavailable, MagicMock(status_code=200)]
            sink(PAYLOAD)
        assert mock_post.call_count == 2


class TestFanOut:
    def test_calls_every_sink_in_order(self):
        calls = []
        sink = fan_out(lambda p: calls.append("a"), lambda p: calls.append("b"))
        sink(PAYLOAD)
        assert calls == ["a", "b"]

    def test_first_failure_stops_the_chain(self):
        second = MagicMock()

        def broken(payload):
            raise SubmissionError("nope")

        with pytest.raises(SubmissionError):
            fan_out(broken, second)(PAYLOAD)
        second.assert_not_called()
