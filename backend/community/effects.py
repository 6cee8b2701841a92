"""
Write results and their side effects.

Every cross-row effect of a write (counter bumps, experience grants) is
returned to the caller as an ordered list of Effect records. The rows
were already changed inside the same transaction; the list lets the
client-side store mirror those changes without guessing.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Effect:
    """`delta` was added to `target`.`field` of row `target_id`."""
    target: str  # 'post' | 'comment' | 'profile' | 'cat'
    target_id: int
    field: str
    delta: int


@dataclass
class WriteResult:
    instance: Any
    effects: list = field(default_factory=list)

    @property
    def id(self):
        return self.instance.pk

    def effects_for(self, target: str) -> list:
        return [effect for effect in self.effects if effect.target == target]
