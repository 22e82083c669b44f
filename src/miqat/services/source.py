from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
import re
from typing import Protocol

from bs4 import BeautifulSoup  # type: ignore[import]
import httpx  # type: ignore[import]

from ..errors import SourceUnavailable
from ..models import PrayerName

logger = logging.getLogger(__name__)

_TIME = r"\d{1,2}:\d{2}(?:\s*[AaPp][Mm])?"
_TEXT_PAIR = re.compile(rf"(?P<name>[A-Za-z][A-Za-z']+)\s*[:\-]?\s*(?P<time>{_TIME})")
_CLOCK_ONLY = re.compile(_TIME)
_TEXT_DATE = re.compile(
    r"(?:[A-Z][a-z]+,?\s+)?\d{1,2}\.?\s+[A-Z][a-z]+\.?\s+\d{4}"
    r"|\d{4}-\d{2}-\d{2}"
)


@dataclass(slots=True)
class RawSchedule:
    entries: list[tuple[str, str]] = field(default_factory=list)
    date_text: str = ""
    hijri_text: str | None = None


class SourceFetcher(Protocol):
    def fetch(self, timeout: float) -> str:
        ...


class AsyncSourceFetcher(Protocol):
    async def fetch(self, timeout: float) -> str:
        ...


def _describe(exc: Exception) -> str:
    return f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__


class _HttpFetcherBase:
    def __init__(self, url: str, user_agent: str | None = None) -> None:
        self.url = url
        self.user_agent = user_agent

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self.user_agent} if self.user_agent else {}


class HttpSourceFetcher(_HttpFetcherBase):
    """Fetch the schedule page with a plain HTTP GET."""

    def __init__(self, url: str, user_agent: str | None = None, client: httpx.Client | None = None) -> None:
        super().__init__(url, user_agent)
        self.client = client

    def fetch(self, timeout: float) -> str:
        logger.info("Fetching schedule page %s", self.url)
        try:
            if self.client is not None:
                response = self.client.get(self.url, headers=self._headers(), timeout=timeout)
            else:
                response = httpx.get(self.url, headers=self._headers(), timeout=timeout, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SourceUnavailable(_describe(exc)) from exc
        return response.text


class AsyncHttpSourceFetcher(_HttpFetcherBase):
    def __init__(self, url: str, user_agent: str | None = None, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(url, user_agent)
        self.client = client

    async def fetch(self, timeout: float) -> str:
        logger.info("Fetching schedule page %s", self.url)
        try:
            if self.client is not None:
                response = await self.client.get(self.url, headers=self._headers(), timeout=timeout)
            else:
                async with httpx.AsyncClient(follow_redirects=True) as client:
                    response = await client.get(self.url, headers=self._headers(), timeout=timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SourceUnavailable(_describe(exc)) from exc
        return response.text


class StaticSourceFetcher:
    """Serve a saved page, either given directly or read from ``path``."""

    def __init__(self, text: str | None = None, path: Path | None = None) -> None:
        if text is None and path is None:
            raise ValueError("StaticSourceFetcher needs text or a path")
        self.text = text
        self.path = path

    def fetch(self, timeout: float) -> str:
        if self.text is not None:
            return self.text
        try:
            return self.path.read_text(encoding="utf-8")  # type: ignore[union-attr]
        except OSError as exc:
            raise SourceUnavailable(_describe(exc)) from exc


def _clean(text: str) -> str:
    return " ".join(text.split())


def _sunrise_entry(soup: BeautifulSoup) -> tuple[str, str] | None:
    block = soup.select_one("#sunrise, .sunrise, #shuruq, .shuruq")
    if block is None:
        return None
    time_node = block.select_one(".time")
    text = _clean((time_node or block).get_text(" "))
    match = _CLOCK_ONLY.search(text)
    if not match:
        return None
    return PrayerName.SUNRISE.value, match.group(0)


def _extract_from_text(text: str) -> RawSchedule:
    raw = RawSchedule()
    seen: set[PrayerName] = set()
    for match in _TEXT_PAIR.finditer(text):
        name = PrayerName.from_label(match.group("name"))
        if name is None or name in seen:
            continue
        seen.add(name)
        raw.entries.append((match.group("name"), match.group("time")))
    date_match = _TEXT_DATE.search(text)
    if date_match:
        raw.date_text = date_match.group(0)
    return raw


def extract_schedule(content: str) -> RawSchedule:
    """Pull prayer names, times and the displayed dates out of a schedule page.

    The Mawaqit markup is tried first (``div.prayers``, ``#gregorianDate``,
    ``#hijriDate``). Pages without it are scanned as plain text for
    ``Name HH:MM`` pairs.
    """
    soup = BeautifulSoup(content or "", "html.parser")
    raw = RawSchedule()

    for block in soup.select("div.prayers > div"):
        name_node = block.select_one(".name")
        time_node = block.select_one(".time > div") or block.select_one(".time")
        name = _clean(name_node.get_text(" ")) if name_node else ""
        time_text = _clean(time_node.get_text(" ")) if time_node else ""
        if name and time_text:
            raw.entries.append((name, time_text))

    date_node = soup.select_one("#gregorianDate")
    if date_node is not None:
        raw.date_text = _clean(date_node.get_text(" "))
    hijri_node = soup.select_one("#hijriDate")
    if hijri_node is not None:
        raw.hijri_text = _clean(hijri_node.get_text(" ")) or None

    if raw.entries:
        sunrise = _sunrise_entry(soup)
        labels = {PrayerName.from_label(label) for label, _ in raw.entries}
        if sunrise and PrayerName.SUNRISE not in labels:
            raw.entries.append(sunrise)
        logger.debug("Extracted %d entries from schedule markup", len(raw.entries))
        return raw

    logger.info("No prayer markup found; scanning page text")
    text_raw = _extract_from_text(_clean(soup.get_text(" ")))
    text_raw.date_text = raw.date_text or text_raw.date_text
    text_raw.hijri_text = raw.hijri_text
    return text_raw
