"""
Message and delivery records for the DTN simulation
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Tuple


@dataclass(frozen=True)
class Delivery:
    """One pending relay of a message from sender to receiver, applied at the step barrier"""
    src: int
    dst: int
    message: str


@dataclass(frozen=True)
class AgentView:
    """Read-only snapshot of an agent handed to monitors"""
    aid: int
    pos: Tuple[float, float, float]
    range: float
    wired: bool
    friends: FrozenSet[int] = field(default_factory=frozenset)
    # messages this agent holds
    messages: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def infected(self) -> bool:
        return bool(self.messages)
