"""AI summary and chat over the aggregated device report."""
from __future__ import annotations

import asyncio
from datetime import date
import json
import logging
import re
from typing import Any, Dict, List, Optional

import aiohttp

from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.dispatcher import async_dispatcher_send
from homeassistant.util import dt as dt_util

from .const import (
    APP_TITLE,
    DEFAULT_MODEL,
    NO_REPLY,
    NO_SUMMARY,
    OPENROUTER_URL,
    SIGNAL_SUMMARY_UPDATED,
    SUMMARY_PLACEHOLDER,
)

_LOGGER = logging.getLogger(__name__)

REQUEST_TIMEOUT = 60

SUMMARY_SYSTEM_PROMPT = (
    "You are a medical assistant summarizing patient logs for doctors. "
    "Always keep the provided dates exactly as written."
)

CHAT_SYSTEM_PROMPT = (
    "You are a helpful doctor assistant analyzing patient logs.\n"
    "Today's date is {today}.\n"
    'Always use this to interpret "today", "yesterday", "this week", and "this month".\n'
    "Never guess dates, only use available log data.\n\n"
    "Here are the stats:\n{stats}\n"
)


class SummarizerError(HomeAssistantError):
    """The text-generation service failed or returned garbage."""


def format_day(value: str) -> str:
    """Render a date key as "2 September 2025"; unknown formats pass through."""
    text = str(value or "").strip()
    parsed: Optional[date] = None
    try:
        parsed = date.fromisoformat(text)
    except ValueError:
        parts = re.split(r"[/-]", text)
        if len(parts) == 3 and all(p.isdigit() for p in parts):
            a, b, c = parts
            try:
                if len(a) == 4:
                    parsed = date(int(a), int(b), int(c))
                elif len(c) == 4:
                    parsed = date(int(c), int(b), int(a))
            except ValueError:
                parsed = None
    if parsed is None:
        return text
    return f"{parsed.day} {parsed.strftime('%B')} {parsed.year}"


def patch_snapshot(snapshot: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of snapshot with daily series dates spelled out for the model."""
    patched = dict(snapshot)
    series = snapshot.get("daily_series")
    if isinstance(series, list):
        patched["daily_series"] = [
            {**row, "date": format_day(row.get("date", ""))} if isinstance(row, dict) else row
            for row in series
        ]
    return patched


class AISummarizerClient:
    """OpenRouter chat-completions client."""

    def __init__(self, hass: HomeAssistant, api_key: str, model: str = DEFAULT_MODEL, url: str = OPENROUTER_URL) -> None:
        self.hass = hass
        self._api_key = api_key
        self._model = model or DEFAULT_MODEL
        self._url = url
        self._session = async_get_clientsession(hass)

    async def _async_complete(self, messages: List[Dict[str, str]]) -> Optional[str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "HTTP-Referer": "https://www.home-assistant.io",
            "X-Title": APP_TITLE,
            "Content-Type": "application/json",
        }
        body = {"model": self._model, "messages": messages}
        try:
            async with self._session.post(
                self._url,
                headers=headers,
                json=body,
                timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT),
            ) as resp:
                if resp.status >= 400:
                    detail = await resp.text()
                    raise SummarizerError(f"Summarizer returned HTTP {resp.status}: {detail[:200]}")
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as err:
            raise SummarizerError(f"Summarizer request failed: {err}") from err
        try:
            return data["choices"][0]["message"]["content"] or None
        except (KeyError, IndexError, TypeError):
            return None

    async def async_summarize(self, snapshot: Dict[str, Any]) -> str:
        patched = patch_snapshot(snapshot)
        messages = [
            {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": "Summarize this patient log data:\n" + json.dumps(patched, indent=2, default=str),
            },
        ]
        return await self._async_complete(messages) or NO_SUMMARY

    async def async_chat(
        self,
        history: List[Dict[str, str]],
        snapshot: Dict[str, Any],
        today: Optional[str] = None,
    ) -> str:
        today = today or dt_util.now().date().isoformat()
        stats = {**snapshot, "today_date": today}
        system = CHAT_SYSTEM_PROMPT.format(today=today, stats=json.dumps(stats, indent=2, default=str))
        messages = [{"role": "system", "content": system}, *history]
        return await self._async_complete(messages) or NO_REPLY


class SummarySlot:
    """Latest-wins holder for summary text.

    Each request takes a sequence number; a response is applied only if no
    newer request has been issued since, so a slow early response cannot
    overwrite a fresher one.
    """

    def __init__(self) -> None:
        self.text: str = ""
        self.pending = False
        self._issued = 0

    @property
    def sequence(self) -> int:
        return self._issued

    def begin(self) -> int:
        self._issued += 1
        self.pending = True
        return self._issued

    def resolve(self, seq: int, text: str) -> bool:
        if seq != self._issued:
            return False
        self.text = text
        self.pending = False
        return True


class SummaryManager:
    """Owns the summary slot and the chat history for one device."""

    def __init__(self, hass: HomeAssistant, entry_id: str, client: Optional[AISummarizerClient]) -> None:
        self.hass = hass
        self.entry_id = entry_id
        self.client = client
        self.slot = SummarySlot()
        self.chat_history: List[Dict[str, str]] = []

    @property
    def available(self) -> bool:
        return self.client is not None

    async def async_refresh(self, snapshot: Dict[str, Any]) -> None:
        if self.client is None:
            return
        seq = self.slot.begin()
        async_dispatcher_send(self.hass, SIGNAL_SUMMARY_UPDATED, self.entry_id)
        try:
            text = await self.client.async_summarize(snapshot)
        except SummarizerError as err:
            _LOGGER.warning("AI summary failed: %s", err)
            text = SUMMARY_PLACEHOLDER
        if not self.slot.resolve(seq, text):
            _LOGGER.debug("Discarding stale summary %s (latest %s)", seq, self.slot.sequence)
            return
        async_dispatcher_send(self.hass, SIGNAL_SUMMARY_UPDATED, self.entry_id)

    async def async_ask(self, message: str, snapshot: Dict[str, Any]) -> str:
        if self.client is None:
            raise HomeAssistantError("No AI API key configured")
        user_msg = {"role": "user", "content": message}
        self.chat_history.append(user_msg)
        try:
            reply = await self.client.async_chat(list(self.chat_history), snapshot)
        except SummarizerError:
            # other asks may have appended since; drop only this question
            self.chat_history[:] = [m for m in self.chat_history if m is not user_msg]
            raise
        self.chat_history.append({"role": "assistant", "content": reply})
        return reply

    def clear_chat(self) -> None:
        self.chat_history.clear()
