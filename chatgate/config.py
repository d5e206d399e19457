"""INI-style configuration shared by the servers."""

from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import Iterator, Mapping

log = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.ini"
_COMMENT_PREFIXES = (";", "#")


class ConfigError(ValueError):
    """Raised when a configuration file cannot be parsed."""

    def __init__(self, message: str, source: str = "<string>", line: int = 0):
        super().__init__(f"{source}:{line}: {message}")
        self.source = source
        self.line = line


class SectionInfo:
    """The key/value pairs of one section; missing keys read as ``""``."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, str] | None = None):
        self._data: dict[str, str] = dict(data or {})

    def __getitem__(self, key: str) -> str:
        return self._data.get(key, "")

    def get_value(self, key: str) -> str:
        """Return the value stored under ``key``, or ``""`` if absent."""
        return self._data.get(key, "")

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._data))

    def __len__(self) -> int:
        return len(self._data)

    def items(self) -> list[tuple[str, str]]:
        return [(key, self._data[key]) for key in sorted(self._data)]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SectionInfo):
            return self._data == other._data
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"SectionInfo({dict(self.items())!r})"


class ConfigMgr:
    """All sections of a configuration; missing sections read as empty."""

    def __init__(self, sections: Mapping[str, Mapping[str, str]] | None = None):
        self._sections: dict[str, SectionInfo] = {
            name: SectionInfo(values) for name, values in (sections or {}).items()
        }

    def __getitem__(self, section: str) -> SectionInfo:
        info = self._sections.get(section)
        if info is None:
            return SectionInfo()
        return SectionInfo(dict(info.items()))

    def get_value(self, section: str, key: str) -> str:
        """Return ``key`` from ``section``, or ``""`` if either is absent."""
        return self[section][key]

    def sections(self) -> list[str]:
        """Names of all sections in sorted order."""
        return sorted(self._sections)

    def __contains__(self, section: object) -> bool:
        return section in self._sections

    def __repr__(self) -> str:
        return f"ConfigMgr({ {name: dict(self._sections[name].items()) for name in self.sections()}!r})"


def _parse_ini(text: str, source: str) -> dict[str, dict[str, str]]:
    sections: dict[str, dict[str, str]] = {}
    current: dict[str, str] | None = None
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith(_COMMENT_PREFIXES):
            continue
        if line.startswith("["):
            end = line.find("]")
            if end == -1:
                raise ConfigError("unmatched '['", source, number)
            name = line[1:end].strip()
            if name in sections:
                raise ConfigError(f"duplicate section name {name!r}", source, number)
            current = sections[name] = {}
            continue
        key, eq, value = line.partition("=")
        if not eq:
            raise ConfigError("'=' character not found in line", source, number)
        key, value = key.strip(), value.strip()
        if current is None:
            # A key outside any section becomes a section without entries.
            if key in sections:
                raise ConfigError(f"duplicate key name {key!r}", source, number)
            sections[key] = {}
            continue
        if key in current:
            raise ConfigError(f"duplicate key name {key!r}", source, number)
        current[key] = value
    return sections


def load_config(path: str | Path) -> ConfigMgr:
    """Read an INI file into a :class:`ConfigMgr`."""
    path = Path(path)
    log.info("Config path: %s", path)
    text = path.read_text(encoding="utf-8-sig")
    config = ConfigMgr(_parse_ini(text, str(path)))
    for name in config.sections():
        log.debug("[%s]", name)
        for key, value in config[name].items():
            log.debug("%s=%s", key, value)
    return config


@functools.lru_cache(maxsize=None)
def default_config() -> ConfigMgr:
    """The shared configuration, read once from ``config.ini`` in the working directory."""
    return load_config(Path.cwd() / CONFIG_FILE_NAME)