from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from typing import Any


@dataclass(frozen=True)
class OutboundEvent:
    name: str
    payload: dict[str, Any] = field(default_factory=dict)
