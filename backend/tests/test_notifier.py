"""Tests for the in-process event notifier."""

from unittest.mock import AsyncMock

import pytest

from loanflow.services import notifier


class TestPublish:

    @pytest.mark.asyncio
    async def test_sync_and_async_subscribers(self):
        seen = []
        async_cb = AsyncMock()
        notifier.subscribe(notifier.DOCUMENT_UPLOADED, lambda name, payload: seen.append((name, payload)))
        notifier.subscribe(notifier.DOCUMENT_UPLOADED, async_cb)

        delivered = await notifier.publish(notifier.DOCUMENT_UPLOADED, {"document_id": 1})

        assert delivered == 2
        assert seen == [("DocumentUploaded", {"document_id": 1})]
        async_cb.assert_awaited_once_with("DocumentUploaded", {"document_id": 1})

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_break_others(self, caplog):
        seen = []

        def broken(name, payload):
            raise RuntimeError("socket closed")

        notifier.subscribe(notifier.APPLICATION_STATUS_CHANGED, broken)
        notifier.subscribe(notifier.APPLICATION_STATUS_CHANGED, lambda name, payload: seen.append(payload))

        with caplog.at_level("WARNING"):
            delivered = await notifier.publish(notifier.APPLICATION_STATUS_CHANGED, {"to": "IN_REVIEW"})

        assert delivered == 1
        assert seen == [{"to": "IN_REVIEW"}]
        assert "failed" in caplog.text

    @pytest.mark.asyncio
    async def test_no_subscribers(self):
        assert await notifier.publish("Nobody", {}) == 0

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        seen = []

        def callback(name, payload):
            seen.append(payload)

        notifier.subscribe(notifier.DATA_CORRECTION_SUBMITTED, callback)
        notifier.unsubscribe(notifier.DATA_CORRECTION_SUBMITTED, callback)
        notifier.unsubscribe(notifier.DATA_CORRECTION_SUBMITTED, callback)

        await notifier.publish(notifier.DATA_CORRECTION_SUBMITTED, {})
        assert seen == []
