import asyncio

import pytest

from custom_components.caregiver_monitor.const import NO_SUMMARY, OPENROUTER_URL
from custom_components.caregiver_monitor.summarizer import (
    AISummarizerClient,
    SummarizerError,
    SummaryManager,
    SummarySlot,
    format_day,
    patch_snapshot,
)


def test_format_day():
    assert format_day("2025-09-02") == "2 September 2025"
    assert format_day("02/09/2025") == "2 September 2025"
    assert format_day("garbage") == "garbage"


def test_patch_snapshot_leaves_original_untouched():
    snapshot = {"daily_series": [{"date": "2025-01-01", "medicine_count": 1}], "totals": {}}
    patched = patch_snapshot(snapshot)
    assert patched["daily_series"][0]["date"] == "1 January 2025"
    assert snapshot["daily_series"][0]["date"] == "2025-01-01"


def test_slot_discards_stale_response():
    slot = SummarySlot()
    first = slot.begin()
    second = slot.begin()

    assert slot.resolve(second, "fresh")
    assert not slot.resolve(first, "stale")
    assert slot.text == "fresh"
    assert slot.pending is False


def test_slot_waits_for_latest_request():
    slot = SummarySlot()
    first = slot.begin()
    slot.begin()

    assert not slot.resolve(first, "old")
    assert slot.text == ""
    assert slot.pending is True


@pytest.mark.asyncio
async def test_summarize_sends_formatted_dates(hass, aioclient_mock):
    aioclient_mock.post(
        OPENROUTER_URL, json={"choices": [{"message": {"content": "All doses taken."}}]}
    )
    client = AISummarizerClient(hass, "key")

    text = await client.async_summarize({"daily_series": [{"date": "2025-09-02"}]})

    assert text == "All doses taken."
    body = aioclient_mock.mock_calls[0][2]
    assert body["messages"][0]["role"] == "system"
    assert "2 September 2025" in body["messages"][1]["content"]


@pytest.mark.asyncio
async def test_summarize_without_choices_falls_back(hass, aioclient_mock):
    aioclient_mock.post(OPENROUTER_URL, json={"choices": []})
    client = AISummarizerClient(hass, "key")
    assert await client.async_summarize({}) == NO_SUMMARY


@pytest.mark.asyncio
async def test_http_error_raises(hass, aioclient_mock):
    aioclient_mock.post(OPENROUTER_URL, status=500, text="upstream down")
    client = AISummarizerClient(hass, "key")
    with pytest.raises(SummarizerError):
        await client.async_summarize({})


@pytest.mark.asyncio
async def test_chat_includes_today_and_history(hass, aioclient_mock):
    aioclient_mock.post(
        OPENROUTER_URL, json={"choices": [{"message": {"content": "Two doses."}}]}
    )
    client = AISummarizerClient(hass, "key", model="test/model")
    history = [{"role": "user", "content": "How many doses?"}]

    reply = await client.async_chat(history, {"totals": {"medicine_taken": 2}}, today="2025-01-15")

    assert reply == "Two doses."
    body = aioclient_mock.mock_calls[0][2]
    assert body["model"] == "test/model"
    assert "Today's date is 2025-01-15." in body["messages"][0]["content"]
    assert body["messages"][1:] == history


class _GatedClient:
    """Chat client whose replies are released by the test."""

    def __init__(self):
        self.gates = {}

    async def async_chat(self, history, snapshot):
        question = history[-1]["content"]
        gate = self.gates.setdefault(question, asyncio.Future())
        result = await gate
        if isinstance(result, Exception):
            raise result
        return result


@pytest.mark.asyncio
async def test_failed_ask_drops_only_its_own_question(hass):
    client = _GatedClient()
    manager = SummaryManager(hass, "entry1", client)

    slow = asyncio.ensure_future(manager.async_ask("slow-fail", {}))
    await asyncio.sleep(0)
    fast = asyncio.ensure_future(manager.async_ask("fast", {}))
    await asyncio.sleep(0)

    client.gates["fast"].set_result("Quick answer.")
    assert await fast == "Quick answer."

    client.gates["slow-fail"].set_result(SummarizerError("timeout"))
    with pytest.raises(SummarizerError):
        await slow

    assert manager.chat_history == [
        {"role": "user", "content": "fast"},
        {"role": "assistant", "content": "Quick answer."},
    ]
