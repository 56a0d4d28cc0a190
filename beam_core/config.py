import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .errors import ConfigurationError

ACCESS_NODES_ENV = "ACCESS_NODES"
LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")
DEFAULT_MAX_RECEIVE_BYTES = 50 * 1024 * 1024
# Heights are uint64 on the wire.
MAX_HEIGHT = 2 ** 64 - 1

# Canonical field -> normalized spellings accepted in the directory file.
_FIELD_ALIASES = {
    "start_height": "startheight",
    "end_height": "endheight",
    "address": "address",
    "is_legacy": "islegacy",
}


@dataclass(frozen=True)
class NodeDescriptor:
    """Immutable description of one access node and the heights it serves."""

    start_height: int
    end_height: int
    address: str
    is_legacy: bool = False

    @property
    def is_unbounded(self) -> bool:
        return self.end_height == 0

    def covers(self, height: int) -> bool:
        return self.start_height <= height and (self.is_unbounded or self.end_height >= height)

    def describe(self) -> str:
        return f"{self.start_height} - {self.end_height}: {self.address} (Legacy={int(self.is_legacy)})"


@dataclass(frozen=True)
class BeamSettings:
    """Process-wide settings for the routing layer."""

    access_nodes_path: Optional[str] = None
    log_level: str = "INFO"
    max_receive_message_length: int = DEFAULT_MAX_RECEIVE_BYTES
    strict_coverage: bool = False

    @property
    def debug(self) -> bool:
        return self.log_level == "DEBUG"

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "BeamSettings":
        """Create BeamSettings from dictionary, using defaults if None or missing keys."""
        if not data:
            return cls()
        return cls(
            access_nodes_path=data.get("access_nodes_path"),
            log_level=_normalize_level(data.get("log_level", "INFO")),
            max_receive_message_length=int(
                data.get("max_receive_message_length", DEFAULT_MAX_RECEIVE_BYTES)
            ),
            strict_coverage=bool(data.get("strict_coverage", False)),
        )

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "BeamSettings":
        env = os.environ if environ is None else environ
        data: Dict[str, object] = {
            "access_nodes_path": env.get(ACCESS_NODES_ENV) or None,
            "log_level": env.get("APP_LOG_LEVEL") or "INFO",
            "strict_coverage": (env.get("BEAM_STRICT_COVERAGE", "").lower() in ("1", "true", "yes")),
        }
        max_mb = env.get("BEAM_MAX_RECEIVE_MB")
        if max_mb:
            try:
                data["max_receive_message_length"] = int(max_mb) * 1024 * 1024
            except ValueError as exc:
                raise ConfigurationError(f"BEAM_MAX_RECEIVE_MB must be an integer, got '{max_mb}'.") from exc
        return cls.from_dict(data)


def _normalize_level(level: str) -> str:
    level = (level or "INFO").upper()
    if level == "WARNING":
        level = "WARN"
    if level not in LOG_LEVELS:
        raise ConfigurationError(f"Unknown log level '{level}', expected one of {', '.join(LOG_LEVELS)}.")
    return level


class NodeDirectory:
    """Directory facade that hides JSON parsing of the access node list.

    Every call to ``load`` re-reads the file, so edits are picked up by the
    next operation without a restart.
    """

    def __init__(self, path: str, strict: bool = False):
        self._path = Path(path)
        self._strict = strict

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None, strict: bool = False) -> "NodeDirectory":
        env = os.environ if environ is None else environ
        path = env.get(ACCESS_NODES_ENV)
        if not path:
            raise ConfigurationError(
                f"{ACCESS_NODES_ENV} environment variable must be path to access nodes JSON file"
            )
        return cls(path, strict=strict)

    @classmethod
    def from_settings(cls, settings: BeamSettings) -> "NodeDirectory":
        if not settings.access_nodes_path:
            raise ConfigurationError(
                f"{ACCESS_NODES_ENV} environment variable must be path to access nodes JSON file"
            )
        return cls(settings.access_nodes_path, strict=settings.strict_coverage)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> List[NodeDescriptor]:
        if not self._path.exists():
            raise ConfigurationError(f"Access nodes file not found: {self._path}")

        try:
            with self._path.open("r", encoding="utf-8") as stream:
                payload = json.load(stream)
        except OSError as exc:
            raise ConfigurationError(f"Cannot read access nodes file {self._path}: {exc}") from exc
        except ValueError as exc:
            raise ConfigurationError(f"Access nodes file {self._path} is not valid JSON: {exc}") from exc

        if not isinstance(payload, list):
            raise ConfigurationError("Access nodes file must contain a JSON array of node definitions.")

        nodes = [self._parse_entry(index, entry) for index, entry in enumerate(payload)]
        if self._strict:
            _check_disjoint(nodes)
        return nodes

    def describe(self) -> List[str]:
        return [node.describe() for node in self.load()]

    @staticmethod
    def _parse_entry(index: int, entry: object) -> NodeDescriptor:
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Access node #{index} must be a JSON object.")

        normalized = {str(key).replace("_", "").lower(): value for key, value in entry.items()}
        values = {name: normalized.get(alias) for name, alias in _FIELD_ALIASES.items()}

        address = values["address"]
        if not isinstance(address, str) or not address:
            raise ConfigurationError(f"Access node #{index} missing required field 'address'.")

        heights = {}
        for name in ("start_height", "end_height"):
            raw = values[name]
            if raw is None:
                raw = 0
            if isinstance(raw, bool) or not isinstance(raw, int) or not 0 <= raw <= MAX_HEIGHT:
                raise ConfigurationError(
                    f"Access node #{index} field '{name}' must be an integer in [0, {MAX_HEIGHT}], got {raw!r}."
                )
            heights[name] = raw

        return NodeDescriptor(
            start_height=heights["start_height"],
            end_height=heights["end_height"],
            address=address,
            is_legacy=bool(values["is_legacy"]),
        )


def _check_disjoint(nodes: List[NodeDescriptor]) -> None:
    for node in nodes:
        if not node.is_unbounded and node.end_height < node.start_height:
            raise ConfigurationError(f"Access node {node.address} ends before it starts ({node.describe()}).")

    ordered = sorted(nodes, key=lambda n: n.start_height)
    for previous, current in zip(ordered, ordered[1:]):
        if previous.is_unbounded or previous.end_height >= current.start_height:
            raise ConfigurationError(
                f"Access nodes overlap: [{previous.describe()}] and [{current.describe()}]"
            )
