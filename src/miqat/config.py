from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
import tomllib
from zoneinfo import ZoneInfo

from .dates import DEFAULT_DATE_FORMATS
from .errors import ConfigurationError
from .fallback import DEFAULT_FALLBACK_TIMES
from .models import PrayerName
from .timeutils import parse_duration, parse_hhmm, resolve_zone

DEFAULT_SOURCE_URL = "https://mawaqit.net/en/friedenmoschee-erlangen"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _default_config_root() -> Path:
    return Path.home() / ".config" / "miqat"


def _toml_duration(value: timedelta) -> str:
    return f"{int(value.total_seconds() // 60)}m"


@dataclass(slots=True)
class SourceSettings:
    url: str = DEFAULT_SOURCE_URL
    timeout: float = 45.0
    user_agent: str = DEFAULT_USER_AGENT


@dataclass(slots=True)
class ScheduleSettings:
    timezone: str = "Europe/Berlin"
    date_formats: list[str] = field(default_factory=lambda: list(DEFAULT_DATE_FORMATS))
    current_window: timedelta = field(default_factory=lambda: timedelta(minutes=90))
    missing_fajr_offset: timedelta = field(default_factory=lambda: timedelta(hours=8))


@dataclass(slots=True)
class FallbackTimes:
    times: dict[PrayerName, str] = field(default_factory=lambda: dict(DEFAULT_FALLBACK_TIMES))

    @classmethod
    def from_dict(cls, values: dict[str, str], errors: list[str] | None = None) -> "FallbackTimes":
        """Build fallback times, keeping the default for every rejected entry.

        Rejections are appended to ``errors`` when given and raised otherwise.
        """
        times = dict(DEFAULT_FALLBACK_TIMES)
        for key, value in values.items():
            try:
                name = PrayerName.from_label(key)
                if name is None:
                    raise ValueError(f"Unknown prayer {key!r}")
                if not isinstance(value, str):
                    raise ValueError(f"Fallback time for {key!r} must be a string")
                parse_hhmm(value)
            except ValueError as exc:
                if errors is None:
                    raise
                errors.append(f"Invalid fallback_times.{key}: {exc}")
                continue
            times[name] = value.strip()
        return cls(times=times)

    def to_dict(self) -> dict[str, str]:
        return {name.value.lower(): value for name, value in self.times.items()}


@dataclass(slots=True)
class MiqatConfig:
    source: SourceSettings
    schedule: ScheduleSettings
    fallback: FallbackTimes

    @classmethod
    def default(cls) -> "MiqatConfig":
        return cls(
            source=SourceSettings(),
            schedule=ScheduleSettings(),
            fallback=FallbackTimes(),
        )

    def zone(self) -> ZoneInfo:
        return resolve_zone(self.schedule.timezone)

    def to_dict(self) -> dict:
        return {
            "source": {
                "url": self.source.url,
                "timeout": self.source.timeout,
                "user_agent": self.source.user_agent,
            },
            "schedule": {
                "timezone": self.schedule.timezone,
                "date_formats": list(self.schedule.date_formats),
                "current_window": _toml_duration(self.schedule.current_window),
                "missing_fajr_offset": _toml_duration(self.schedule.missing_fajr_offset),
            },
            "fallback_times": self.fallback.to_dict(),
        }


class ConfigManager:
    """TOML configuration loader.

    Problems that have a sensible default are collected in ``errors()``; an
    unusable time zone raises ConfigurationError so it surfaces at startup.
    """

    def __init__(self, config_path: Path | None = None) -> None:
        self.config_path = config_path or (_default_config_root() / "config.toml")
        self._errors: list[str] = []

    def errors(self) -> list[str]:
        return list(self._errors)

    def load(self) -> MiqatConfig:
        self._errors.clear()
        if not self.config_path.exists():
            config = MiqatConfig.default()
            self._write(config)
            config.zone()
            return config

        try:
            with self.config_path.open("rb") as handle:
                raw = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Invalid TOML in {self.config_path}: {exc}") from exc

        source_cfg = raw.get("source", {})
        schedule_cfg = raw.get("schedule", {})
        defaults = ScheduleSettings()

        def _duration(key: str, default: timedelta) -> timedelta:
            value = schedule_cfg.get(key)
            if value in (None, ""):
                return default
            try:
                parsed = parse_duration(str(value))
            except ValueError as exc:
                self._errors.append(f"Invalid schedule.{key}: {exc}")
                return default
            if parsed <= timedelta():
                self._errors.append(f"schedule.{key} must be positive")
                return default
            return parsed

        formats = schedule_cfg.get("date_formats")
        if formats is None:
            formats = list(DEFAULT_DATE_FORMATS)
        elif not isinstance(formats, list) or not all(isinstance(item, str) for item in formats) or not formats:
            self._errors.append("schedule.date_formats must be a non-empty list of strings")
            formats = list(DEFAULT_DATE_FORMATS)

        try:
            timeout = float(source_cfg.get("timeout", 45.0))
        except (TypeError, ValueError):
            self._errors.append(f"Invalid source.timeout: {source_cfg.get('timeout')!r}")
            timeout = 45.0

        fallback_cfg = raw.get("fallback_times", {})
        if isinstance(fallback_cfg, dict):
            fallback = FallbackTimes.from_dict(fallback_cfg, self._errors)
        else:
            self._errors.append("fallback_times must be a table")
            fallback = FallbackTimes()

        config = MiqatConfig(
            source=SourceSettings(
                url=source_cfg.get("url", DEFAULT_SOURCE_URL),
                timeout=timeout,
                user_agent=source_cfg.get("user_agent", DEFAULT_USER_AGENT),
            ),
            schedule=ScheduleSettings(
                timezone=schedule_cfg.get("timezone", defaults.timezone),
                date_formats=formats,
                current_window=_duration("current_window", defaults.current_window),
                missing_fajr_offset=_duration("missing_fajr_offset", defaults.missing_fajr_offset),
            ),
            fallback=fallback,
        )
        config.zone()
        return config

    def _write(self, config: MiqatConfig) -> None:
        data = config.to_dict()
        lines = ["[source]"]
        lines.append(f"url = \"{data['source']['url']}\"")
        lines.append(f"timeout = {data['source']['timeout']}")
        lines.append(f"user_agent = \"{data['source']['user_agent']}\"")
        lines.extend([
            "",
            "[schedule]",
            f"timezone = \"{data['schedule']['timezone']}\"",
            "date_formats = [",
        ])
        for pattern in data["schedule"]["date_formats"]:
            lines.append(f"    \"{pattern}\",")
        lines.extend([
            "]",
            f"current_window = \"{data['schedule']['current_window']}\"",
            f"missing_fajr_offset = \"{data['schedule']['missing_fajr_offset']}\"",
            "",
            "[fallback_times]",
        ])
        for prayer, value in data["fallback_times"].items():
            lines.append(f"{prayer} = \"{value}\"")
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self.config_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    def save(self, config: MiqatConfig) -> None:
        self._write(config)
