"""Crisis rule table and per-tier policy.

Rules are data, not control flow: each rule has a stable id, a pattern
and a tier. Within a tier, list order is priority order. Whether a tier
stops at the first hit or collects every hit is declared on the tier
policy, not in the scanning loop.

Patterns are English-only and case-insensitive.
"""
import os
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from companion_safety.shared.models import CrisisAction, CrisisTier


RULESET_VERSION = "2026.10.01"


@dataclass(frozen=True)
class CrisisRule:
    """One crisis phraseology rule."""
    rule_id: str
    pattern: str
    tier: CrisisTier


@dataclass(frozen=True)
class TierPolicy:
    """How a tier is scanned and what it tells the UI to do."""
    tier: CrisisTier
    action: CrisisAction
    first_match_only: bool
    suggested_response: Optional[str] = None


@dataclass(frozen=True)
class SafetyServiceConfig:
    """Configuration for the safety (classification) service."""
    ruleset_version: str = RULESET_VERSION
    default_region: str = "US"

    @classmethod
    def from_env(cls) -> "SafetyServiceConfig":
        """Create config from environment variables.

        Environment variables:
            RULESET_VERSION: Version reported in health checks
            DEFAULT_RESOURCE_REGION: Region used when a request omits one
        """
        return cls(
            ruleset_version=os.getenv("RULESET_VERSION", RULESET_VERSION),
            default_region=os.getenv("DEFAULT_RESOURCE_REGION", "US"),
        )


IMMEDIATE_RESPONSE = (
    "I'm concerned about what you've shared. Please know that you're not alone, "
    "and there are people who want to help. Would you like me to share some "
    "resources that can provide immediate support?"
)

HIGH_CONCERN_RESPONSE = (
    "It sounds like you're going through an incredibly difficult time. Grief can "
    "be overwhelming, and it's okay to need extra support. There are people who "
    "understand and want to help."
)


TIER_POLICIES: Dict[CrisisTier, TierPolicy] = {
    CrisisTier.IMMEDIATE: TierPolicy(
        tier=CrisisTier.IMMEDIATE,
        action=CrisisAction.SHOW_RESOURCES,
        first_match_only=True,
        suggested_response=IMMEDIATE_RESPONSE,
    ),
    CrisisTier.HIGH: TierPolicy(
        tier=CrisisTier.HIGH,
        action=CrisisAction.OFFER_RESOURCES,
        first_match_only=True,
        suggested_response=HIGH_CONCERN_RESPONSE,
    ),
    # Tier 3 keeps the full evidence set for later pattern analysis
    CrisisTier.MONITOR: TierPolicy(
        tier=CrisisTier.MONITOR,
        action=CrisisAction.LOG,
        first_match_only=False,
    ),
}

# Evaluation order: most urgent tier first
TIER_ORDER: Tuple[CrisisTier, ...] = (
    CrisisTier.IMMEDIATE,
    CrisisTier.HIGH,
    CrisisTier.MONITOR,
)


CRISIS_RULES: Tuple[CrisisRule, ...] = (
    # ==========================================================================
    # TIER 1 - IMMEDIATE CRISIS (show resources immediately)
    # ==========================================================================
    CrisisRule("t1.harm_self", r"\b(kill|end|hurt)\s*(myself|my\s*life)\b", CrisisTier.IMMEDIATE),
    CrisisRule("t1.suicide", r"\bsuicid", CrisisTier.IMMEDIATE),
    CrisisRule("t1.want_to_die", r"\bwant\s*to\s*die\b", CrisisTier.IMMEDIATE),
    CrisisRule("t1.end_it_all", r"\bend\s*it\s*all\b", CrisisTier.IMMEDIATE),
    CrisisRule("t1.no_reason_to_live", r"\bno\s*reason\s*to\s*live\b", CrisisTier.IMMEDIATE),
    CrisisRule("t1.take_my_life", r"\btake\s*my\s*(own\s*)?life\b", CrisisTier.IMMEDIATE),
    CrisisRule("t1.dont_want_to_exist", r"\bdon'?t\s*want\s*to\s*(be\s*here|exist|live)\b", CrisisTier.IMMEDIATE),
    CrisisRule("t1.better_off_dead", r"\bbetter\s*off\s*(dead|without\s*me)\b", CrisisTier.IMMEDIATE),

    # ==========================================================================
    # TIER 2 - HIGH CONCERN (offer resources gently)
    # ==========================================================================
    CrisisRule("t2.cant_go_on", r"\bcan'?t\s*go\s*on\b", CrisisTier.HIGH),
    CrisisRule("t2.join_them", r"\bjoin\s*(them|him|her)\b", CrisisTier.HIGH),
    CrisisRule("t2.be_with_them_again", r"\bbe\s*with\s*(them|him|her)\s*(again|soon)\b", CrisisTier.HIGH),
    CrisisRule("t2.wish_i_was_dead", r"\bwish\s*i\s*was\s*dead\b", CrisisTier.HIGH),
    CrisisRule("t2.give_up", r"\bgive\s*up\b", CrisisTier.HIGH),
    CrisisRule("t2.no_point", r"\bno\s*point\b", CrisisTier.HIGH),
    CrisisRule("t2.cant_do_this", r"\bcan'?t\s*do\s*this\s*(anymore)?\b", CrisisTier.HIGH),
    CrisisRule("t2.nothing_matters", r"\bnothing\s*matters\b", CrisisTier.HIGH),
    CrisisRule("t2.whats_the_point", r"\bwhat'?s\s*the\s*point\b", CrisisTier.HIGH),
    CrisisRule("t2.cant_take_it", r"\bcan'?t\s*take\s*(it|this)\s*(anymore)?\b", CrisisTier.HIGH),

    # ==========================================================================
    # TIER 3 - MONITOR (log for pattern detection)
    # ==========================================================================
    CrisisRule("t3.so_sad", r"\bso\s*(sad|lonely|empty|lost)\b", CrisisTier.MONITOR),
    CrisisRule("t3.nobody_cares", r"\bnobody\s*(cares|understands)\b", CrisisTier.MONITOR),
    CrisisRule("t3.all_alone", r"\ball\s*alone\b", CrisisTier.MONITOR),
    CrisisRule("t3.miss_them", r"\bmiss\s*(them|him|her)\s*so\s*much\b", CrisisTier.MONITOR),
    CrisisRule("t3.cant_stop_crying", r"\bcan'?t\s*stop\s*crying\b", CrisisTier.MONITOR),
    CrisisRule("t3.hopeless", r"\bfeeling\s*(hopeless|worthless)\b", CrisisTier.MONITOR),
    CrisisRule("t3.cant_cope", r"\bdon'?t\s*know\s*how\s*to\s*(cope|handle)\b", CrisisTier.MONITOR),
    CrisisRule("t3.falling_apart", r"\bfalling\s*apart\b", CrisisTier.MONITOR),
)


# Retraction phrasing. Used to soften a follow-up reply, never to
# downgrade a recorded result.
DISMISSAL_PATTERNS: Tuple[str, ...] = (
    r"\bjust\s*(kidding|joking)\b",
    r"\bnevermind\b",
    r"\bforget\s*(it|that)\b",
    r"\bi('?m)?\s*fine\b",
    r"\bdon'?t\s*worry\b",
)
