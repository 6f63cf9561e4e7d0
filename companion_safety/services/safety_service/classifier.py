"""Crisis pattern classifier.

Scans a single user-authored message for crisis phraseology and assigns
a tier. The classifier holds no session state and never raises: any
input it cannot read is tier 0.

Scanning:
- Tiers are evaluated most urgent first; the first tier with a hit wins
- Tiers 1-2 stop at the first matching rule (short-circuit)
- Tier 3 collects every matching rule
"""
import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from companion_safety.shared.models import CrisisResult, CrisisTier
from companion_safety.shared.models.crisis import NO_CRISIS
from companion_safety.shared.utils import hash_text_for_audit
from .rules import (
    CRISIS_RULES,
    DISMISSAL_PATTERNS,
    RULESET_VERSION,
    TIER_ORDER,
    TIER_POLICIES,
    CrisisRule,
    TierPolicy,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CompiledRule:
    rule_id: str
    regex: re.Pattern


def _normalize(text: str) -> str:
    # Typographic apostrophes from mobile keyboards
    return text.replace("’", "'").replace("‘", "'")


class CrisisClassifier:
    """Deterministic tiered classifier over a crisis rule table.

    Usage:
        classifier = CrisisClassifier()
        result = classifier.classify("I want to die")
        result.tier  # CrisisTier.IMMEDIATE
    """

    def __init__(
        self,
        rules: Iterable[CrisisRule] = CRISIS_RULES,
        policies: Optional[Dict[CrisisTier, TierPolicy]] = None,
        dismissal_patterns: Iterable[str] = DISMISSAL_PATTERNS,
        ruleset_version: str = RULESET_VERSION,
    ):
        """Compile the rule table.

        Args:
            rules: Crisis rules; order within a tier is priority order
            policies: Per-tier scanning policy (defaults to TIER_POLICIES)
            dismissal_patterns: Retraction phrasing patterns
            ruleset_version: Version string for audit and health checks
        """
        self.policies = policies or TIER_POLICIES
        self.ruleset_version = ruleset_version

        self._rules_by_tier: Dict[CrisisTier, List[_CompiledRule]] = {
            tier: [] for tier in TIER_ORDER
        }
        seen_ids = set()
        for rule in rules:
            if rule.rule_id in seen_ids:
                raise ValueError(f"Duplicate crisis rule id: {rule.rule_id}")
            if rule.tier not in self._rules_by_tier:
                raise ValueError(f"Rule {rule.rule_id} has non-scanning tier {rule.tier!r}")
            seen_ids.add(rule.rule_id)
            self._rules_by_tier[rule.tier].append(
                _CompiledRule(rule.rule_id, re.compile(rule.pattern, re.IGNORECASE))
            )

        self._dismissal_patterns = [
            re.compile(pattern, re.IGNORECASE) for pattern in dismissal_patterns
        ]

        logger.info(
            "CRISIS_CLASSIFIER_INITIALIZED",
            extra={
                "ruleset_version": ruleset_version,
                "rule_counts": {
                    int(tier): len(compiled) for tier, compiled in self._rules_by_tier.items()
                },
            }
        )

    def classify(self, message: str) -> CrisisResult:
        """Classify one message.

        Args:
            message: Raw user-authored text

        Returns:
            CrisisResult; tier 0 for empty or non-string input
        """
        if not isinstance(message, str) or not message.strip():
            return NO_CRISIS

        text = _normalize(message)

        for tier in TIER_ORDER:
            policy = self.policies[tier]
            matched = self._scan_tier(tier, text, policy.first_match_only)
            if matched:
                result = CrisisResult(
                    tier=tier,
                    matched_rule_ids=matched,
                    action=policy.action,
                    suggested_response=policy.suggested_response,
                )
                self._log_detection(result, message)
                return result

        return NO_CRISIS

    def is_dismissing_crisis(self, message: str) -> bool:
        """Detect retraction phrasing such as "just kidding" or "I'm fine".

        Callers may use this to soften a follow-up reply. It does not
        downgrade or erase a previously recorded CrisisResult.
        """
        if not isinstance(message, str) or not message:
            return False
        text = _normalize(message)
        return any(pattern.search(text) for pattern in self._dismissal_patterns)

    def _scan_tier(
        self,
        tier: CrisisTier,
        text: str,
        first_match_only: bool,
    ) -> Tuple[str, ...]:
        matched = []
        for rule in self._rules_by_tier[tier]:
            if rule.regex.search(text):
                matched.append(rule.rule_id)
                if first_match_only:
                    break
        return tuple(matched)

    def _log_detection(self, result: CrisisResult, message: str) -> None:
        # Logging must never turn a detection into an exception
        try:
            self._write_detection_log(result, message)
        except Exception as e:
            logger.error(
                "CRISIS_DETECTION_LOG_FAILED",
                extra={
                    "tier": int(result.tier),
                    "matched_rule_ids": list(result.matched_rule_ids),
                    "error_type": type(e).__name__,
                }
            )

    def _write_detection_log(self, result: CrisisResult, message: str) -> None:
        context = {
            "tier": int(result.tier),
            "matched_rule_ids": list(result.matched_rule_ids),
            "action": result.action.value,
            "text_hash": hash_text_for_audit(message),
            "text_length": len(message),
            "ruleset_version": self.ruleset_version,
        }
        if result.tier == CrisisTier.IMMEDIATE:
            logger.critical("CRISIS_TIER_DETECTED", extra=context)
        elif result.tier == CrisisTier.HIGH:
            logger.warning("CRISIS_TIER_DETECTED", extra=context)
        else:
            logger.info("CRISIS_TIER_DETECTED", extra=context)


_default_classifier: Optional[CrisisClassifier] = None


def get_classifier() -> CrisisClassifier:
    """Get or create the shared classifier instance."""
    global _default_classifier

    if _default_classifier is None:
        _default_classifier = CrisisClassifier()

    return _default_classifier


def classify(message: str) -> CrisisResult:
    """Classify one message with the shared classifier."""
    return get_classifier().classify(message)


def is_dismissing_crisis(message: str) -> bool:
    """Check one message for retraction phrasing with the shared classifier."""
    return get_classifier().is_dismissing_crisis(message)
