# cvsection/config.py
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

import yaml

from .headers import DATA_PACKET_HEADER_SIZE, MAX_PACKET_LENGTH

# Packets hold at most 65535 bytes; 64000 leaves room for the header,
# the size table and the partial bytes of every bytestream.
DEFAULT_PACKET_BUDGET = 64000


@dataclass(frozen=True)
class WriterConfig:
    packet_budget_bytes: int = DEFAULT_PACKET_BUDGET
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        limit = MAX_PACKET_LENGTH - DATA_PACKET_HEADER_SIZE
        budget = self.packet_budget_bytes
        if isinstance(budget, bool) or not isinstance(budget, int):
            raise ValueError(f"packet_budget_bytes must be an int, got {type(budget).__name__}")
        if not (1 <= budget <= limit):
            raise ValueError(f"packet_budget_bytes must be within 1..{limit}")

    @classmethod
    def from_mapping(cls, m: Optional[Mapping[str, Any]]) -> "WriterConfig":
        m = dict(m or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(m) - known)
        if unknown:
            raise ValueError(f"Unknown writer config keys: {', '.join(unknown)}")
        if "log_level" in m:
            m["log_level"] = str(m["log_level"]).upper()
        return cls(**m)


def _load_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_config(path: str) -> WriterConfig:
    """
    Load a WriterConfig from YAML:

        writer:
          packet_budget_bytes: 64000
          log_level: INFO
    """
    doc = _load_yaml(path)
    if not isinstance(doc, dict):
        raise ValueError(f"Config root must be a mapping: {path}")
    return WriterConfig.from_mapping(doc.get("writer"))
