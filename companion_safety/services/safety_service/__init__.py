"""Safety Service: crisis pattern classification and resource lookup.

Every user-authored companion message passes through the classifier
before it is recorded on the session. The classifier is advisory: it
never blocks delivery of a message.

Components:
- rules.py: Crisis rule table, tier policies, dismissal phrasing
- classifier.py: CrisisClassifier and module-level classify()
- resources.py: Regional crisis resources and grief tips
- handler.py: Flask HTTP endpoints (/health, /classify, /resources)

Usage:
    from companion_safety.services.safety_service import classify
    result = classify("I feel so lonely and nobody understands")
    result.tier  # CrisisTier.MONITOR
"""

from .classifier import CrisisClassifier, classify, is_dismissing_crisis, get_classifier
from .rules import (
    CRISIS_RULES,
    DISMISSAL_PATTERNS,
    RULESET_VERSION,
    TIER_POLICIES,
    CrisisRule,
    SafetyServiceConfig,
    TierPolicy,
)
from .resources import (
    CRISIS_RESOURCES,
    GRIEF_TIPS,
    CrisisResource,
    get_crisis_resources,
    get_random_grief_tip,
)

__all__ = [
    "CrisisClassifier",
    "classify",
    "is_dismissing_crisis",
    "get_classifier",
    "CRISIS_RULES",
    "DISMISSAL_PATTERNS",
    "RULESET_VERSION",
    "TIER_POLICIES",
    "CrisisRule",
    "SafetyServiceConfig",
    "TierPolicy",
    "CRISIS_RESOURCES",
    "GRIEF_TIPS",
    "CrisisResource",
    "get_crisis_resources",
    "get_random_grief_tip",
]
