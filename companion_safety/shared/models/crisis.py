"""Crisis tier and classification result models.

A crisis result is the per-message reading produced by the pattern
classifier. It is immutable once produced and travels with the message
into the session history.
"""
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Optional, Tuple


class CrisisTier(IntEnum):
    """Severity bucket assigned to a single message."""
    NONE = 0        # No crisis phraseology found
    IMMEDIATE = 1   # Explicit self-harm/suicide language
    HIGH = 2        # Hopelessness, giving up
    MONITOR = 3     # General distress, loneliness


class CrisisAction(Enum):
    """What the conversation UI should do with a classified message."""
    NONE = "none"
    LOG = "log"
    OFFER_RESOURCES = "offer_resources"
    SHOW_RESOURCES = "show_resources"


@dataclass(frozen=True)
class CrisisResult:
    """Result of classifying one message.

    Immutable - a recorded result is never downgraded or rewritten,
    even if the user later retracts what they said.
    """
    tier: CrisisTier
    matched_rule_ids: Tuple[str, ...] = field(default_factory=tuple)
    action: CrisisAction = CrisisAction.NONE
    suggested_response: Optional[str] = None

    def __post_init__(self):
        if self.tier == CrisisTier.NONE and self.matched_rule_ids:
            raise ValueError("Tier 0 result cannot carry matched rules")
        if self.tier != CrisisTier.NONE and not self.matched_rule_ids:
            raise ValueError(f"Tier {int(self.tier)} result requires matched rules")

    @property
    def is_crisis_event(self) -> bool:
        """Tier 1 and 2 count as crisis events for escalation."""
        return self.tier in (CrisisTier.IMMEDIATE, CrisisTier.HIGH)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses and persistence."""
        return {
            "tier": int(self.tier),
            "matched_rule_ids": list(self.matched_rule_ids),
            "action": self.action.value,
            "suggested_response": self.suggested_response,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CrisisResult":
        return cls(
            tier=CrisisTier(int(data["tier"])),
            matched_rule_ids=tuple(data.get("matched_rule_ids") or ()),
            action=CrisisAction(data.get("action", CrisisAction.NONE.value)),
            suggested_response=data.get("suggested_response"),
        )


NO_CRISIS = CrisisResult(tier=CrisisTier.NONE)
