"""Tests for notification channels and their retry policy."""

import io
import json
from unittest.mock import MagicMock, patch
from urllib.error import HTTPError, URLError

import pytest

from signal_relay.config.channels import DiscordChannelConfig, TelegramChannelConfig
from signal_relay.config.defaults import DispatchParams
from signal_relay.delivery.base import (
    ChannelPermanentError,
    ChannelRetryableError,
    DeliveryStatus,
    Message,
)
from signal_relay.delivery.discord import DiscordChannel
from signal_relay.delivery.telegram import TelegramChannel
from signal_relay.errors import DeliveryError

from conftest import FakeChannel

WEBHOOK_URL = "https://discord.com/api/webhooks/1/abc"


def http_error(code, body=b"", headers=None):
    return HTTPError(WEBHOOK_URL, code, "error", headers or {}, io.BytesIO(body))


def ok_response(code=204, body=b""):
    response = MagicMock()
    response.getcode.return_value = code
    response.read.return_value = body
    context = MagicMock()
    context.__enter__.return_value = response
    context.__exit__.return_value = False
    return context


class TestRetryPolicy:
    """Test BaseChannel.send retry and backoff."""

    def test_success_first_attempt(self):
        channel = FakeChannel()

        result = channel.send(Message(text="hi"))

        assert result.status == DeliveryStatus.SUCCESS
        assert result.attempt_count == 1
        assert channel.sleeps == []

    def test_retries_server_errors_then_succeeds(self):
        channel = FakeChannel(outcomes=[
            ChannelRetryableError("HTTP 500", status_code=500),
            ChannelRetryableError("HTTP 500", status_code=500),
            None,
        ])

        result = channel.send(Message(text="hi"))

        assert result.success
        assert result.attempt_count == 3
        assert channel.sleeps == [1.0, 2.0]

    def test_permanent_error_is_not_retried(self):
        channel = FakeChannel(outcomes=[ChannelPermanentError("HTTP 404", status_code=404)])

        result = channel.send(Message(text="hi"))

        assert result.status == DeliveryStatus.FAILED
        assert result.attempt_count == 1
        assert len(channel.attempts) == 1
        assert channel.sleeps == []

    def test_exhausted_retries_dead_letter(self):
        channel = FakeChannel(outcomes=[ChannelRetryableError("timeout")] * 3)

        result = channel.send(Message(text="hi"))

        assert result.status == DeliveryStatus.DEAD_LETTER
        assert result.attempt_count == 3
        assert channel.sleeps == [1.0, 2.0]
        assert channel.get_stats()["failed"] == 1

    def test_unknown_errors_are_retried(self):
        channel = FakeChannel(outcomes=[RuntimeError("unexpected"), None])

        result = channel.send(Message(text="hi"))

        assert result.success
        assert result.attempt_count == 2

    def test_rate_limit_hint_extends_backoff(self):
        channel = FakeChannel(outcomes=[ChannelRetryableError("HTTP 429", status_code=429, retry_after=5.0), None])

        channel.send(Message(text="hi"))

        assert channel.sleeps == [5.0]

    def test_rate_limit_hint_is_capped(self):
        channel = FakeChannel(params=DispatchParams(max_retry_after_seconds=30.0))

        assert channel.backoff_delay(1, retry_after=120.0) == 30.0
        assert channel.backoff_delay(3) == 4.0


class TestDiscordChannel:
    """Test Discord webhook delivery."""

    @pytest.fixture
    def channel(self):
        sleeps = []
        channel = DiscordChannel(
            DiscordChannelConfig(webhook_url=WEBHOOK_URL, username="Relay"),
            DispatchParams(),
            sleep=sleeps.append,
        )
        channel.sleeps = sleeps
        return channel

    def test_invalid_url_rejected(self):
        with pytest.raises(DeliveryError):
            DiscordChannel(DiscordChannelConfig(webhook_url="not a url"))

    def test_build_payload(self, channel):
        embed = {"title": "Trade 101"}
        message = Message(text="x" * 2500, image_url="https://img/buy.png", embeds=(embed,))

        payload = channel.build_payload(message)

        assert len(payload["content"]) == 2000
        assert payload["embeds"][0] == {"image": {"url": "https://img/buy.png"}}
        assert payload["embeds"][1] == embed
        assert payload["username"] == "Relay"

    def test_build_payload_caps_embeds(self, channel):
        embeds = tuple({"title": str(i)} for i in range(12))

        payload = channel.build_payload(Message(text="t", image_url="https://img/a.png", embeds=embeds))

        assert len(payload["embeds"]) == 10

    def test_dropped_embeds_are_logged(self, channel):
        channel.logger = MagicMock()
        embeds = tuple({"title": str(i)} for i in range(12))
        message = Message(text="t", image_url="https://img/a.png", embeds=embeds, kind="entry")

        payload = channel.build_payload(message)

        assert payload["embeds"][-1] == {"title": "8"}
        channel.logger.warning.assert_called_once_with(
            "Embeds dropped over Discord limit", kind="entry", dropped=3, limit=10
        )

    def test_long_content_truncation_is_logged(self, channel):
        channel.logger = MagicMock()

        channel.build_payload(Message(text="x" * 2500, kind="summary"))

        channel.logger.warning.assert_called_once_with(
            "Message text truncated", field="content", kind="summary", length=2500, limit=2000
        )

    @patch("signal_relay.delivery.http_channel.urlopen")
    def test_deliver_posts_json(self, mock_urlopen, channel):
        mock_urlopen.return_value = ok_response()

        result = channel.send(Message(text="Buy NQ Now"))

        assert result.success
        request = mock_urlopen.call_args[0][0]
        assert request.full_url == WEBHOOK_URL
        assert request.get_method() == "POST"
        assert json.loads(request.data)["content"] == "Buy NQ Now"
        assert mock_urlopen.call_args[1]["timeout"] == 10.0

    @patch("signal_relay.delivery.http_channel.urlopen")
    def test_server_errors_retried_until_success(self, mock_urlopen, channel):
        mock_urlopen.side_effect = [http_error(500), http_error(502), ok_response()]

        result = channel.send(Message(text="hi"))

        assert result.success
        assert result.attempt_count == 3
        assert channel.sleeps == [1.0, 2.0]

    @patch("signal_relay.delivery.http_channel.urlopen")
    def test_client_error_is_permanent(self, mock_urlopen, channel):
        mock_urlopen.side_effect = http_error(404, b'{"message": "Unknown Webhook"}')

        result = channel.send(Message(text="hi"))

        assert result.status == DeliveryStatus.FAILED
        assert result.attempt_count == 1
        assert mock_urlopen.call_count == 1

    @patch("signal_relay.delivery.http_channel.urlopen")
    def test_rate_limit_uses_body_hint(self, mock_urlopen, channel):
        mock_urlopen.side_effect = http_error(429, b'{"retry_after": 2.5}')

        with pytest.raises(ChannelRetryableError) as exc_info:
            channel.deliver(Message(text="hi"))

        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == 2.5

    @patch("signal_relay.delivery.http_channel.urlopen")
    def test_rate_limit_uses_header_hint(self, mock_urlopen, channel):
        mock_urlopen.side_effect = http_error(429, b"", {"Retry-After": "3"})

        with pytest.raises(ChannelRetryableError) as exc_info:
            channel.deliver(Message(text="hi"))

        assert exc_info.value.retry_after == 3.0

    @patch("signal_relay.delivery.http_channel.urlopen")
    def test_network_error_is_retryable(self, mock_urlopen, channel):
        mock_urlopen.side_effect = URLError("connection refused")

        with pytest.raises(ChannelRetryableError):
            channel.deliver(Message(text="hi"))


class TestTelegramChannel:
    """Test Telegram bot delivery."""

    @pytest.fixture
    def channel(self):
        return TelegramChannel(
            TelegramChannelConfig(bot_token="123:abc", chat_id="-100200"),
            DispatchParams(),
            sleep=lambda _: None,
        )

    def test_requires_credentials(self):
        with pytest.raises(DeliveryError):
            TelegramChannel(TelegramChannelConfig(bot_token="123:abc"))

    def test_not_primary_by_default(self, channel):
        assert channel.primary is False

    def test_text_message(self, channel):
        embed = {"title": "Trade 101", "fields": [{"name": "Entry", "value": "100"}]}

        method, payload = channel.build_request(Message(text="**Hard Stop**", embeds=(embed,)))

        assert method == "sendMessage"
        assert payload["chat_id"] == "-100200"
        assert payload["text"] == "**Hard Stop**\n\nTrade 101\nEntry: 100"
        assert payload["disable_web_page_preview"] is True

    def test_image_message_uses_photo_caption(self, channel):
        method, payload = channel.build_request(Message(text="y" * 2000, image_url="https://img/buy.png"))

        assert method == "sendPhoto"
        assert payload["photo"] == "https://img/buy.png"
        assert len(payload["caption"]) == 1024

    def test_long_text_truncation_is_logged(self, channel):
        channel.logger = MagicMock()

        method, payload = channel.build_request(Message(text="z" * 5000, kind="weekly_summary"))

        assert len(payload["text"]) == 4096
        channel.logger.warning.assert_called_once_with(
            "Message text truncated", field="text", kind="weekly_summary", length=5000, limit=4096
        )

    @patch("signal_relay.delivery.http_channel.urlopen")
    def test_deliver_targets_bot_method(self, mock_urlopen, channel):
        mock_urlopen.return_value = ok_response(200, b'{"ok": true}')

        channel.deliver(Message(text="hi"))

        request = mock_urlopen.call_args[0][0]
        assert request.full_url == "https://api.telegram.org/bot123:abc/sendMessage"

    @patch("signal_relay.delivery.http_channel.urlopen")
    def test_rate_limit_uses_parameters_hint(self, mock_urlopen, channel):
        mock_urlopen.side_effect = http_error(429, b'{"ok": false, "parameters": {"retry_after": 7}}')

        with pytest.raises(ChannelRetryableError) as exc_info:
            channel.deliver(Message(text="hi"))

        assert exc_info.value.retry_after == 7.0
