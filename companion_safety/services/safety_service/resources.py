"""Crisis resource directory and grief tips.

Static lookup keyed by region code. Unknown or missing regions fall back
to the DEFAULT international list. The primary resource is always first.
"""
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class CrisisResource:
    """A crisis-support contact shown alongside tier 1-2 detections."""
    name: str
    action: str
    available: str
    phone: Optional[str] = None
    text: Optional[str] = None
    url: Optional[str] = None
    is_primary: bool = False

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "name": self.name,
            "action": self.action,
            "available": self.available,
            "is_primary": self.is_primary,
        }
        for key in ("phone", "text", "url"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result


DEFAULT_REGION = "DEFAULT"

CRISIS_RESOURCES: Dict[str, List[CrisisResource]] = {
    "US": [
        CrisisResource(
            name="988 Suicide & Crisis Lifeline",
            action="Call or text 988",
            phone="988",
            text="988",
            url="https://988lifeline.org",
            available="24/7",
            is_primary=True,
        ),
        CrisisResource(
            name="Crisis Text Line",
            action="Text HOME to 741741",
            text="HOME to 741741",
            url="https://www.crisistextline.org",
            available="24/7",
        ),
        CrisisResource(
            name="National Alliance on Mental Illness",
            action="Call 1-800-950-6264",
            phone="1-800-950-6264",
            url="https://www.nami.org",
            available="Mon-Fri 10am-10pm ET",
        ),
        CrisisResource(
            name="GriefShare",
            action="Find a local support group",
            url="https://www.griefshare.org",
            available="Check local listings",
        ),
    ],
    "UK": [
        CrisisResource(
            name="Samaritans",
            action="Call 116 123",
            phone="116 123",
            url="https://www.samaritans.org",
            available="24/7",
            is_primary=True,
        ),
        CrisisResource(
            name="SHOUT",
            action="Text SHOUT to 85258",
            text="SHOUT to 85258",
            url="https://giveusashout.org",
            available="24/7",
        ),
    ],
    "CA": [
        CrisisResource(
            name="Talk Suicide Canada",
            action="Call 1-833-456-4566",
            phone="1-833-456-4566",
            url="https://talksuicide.ca",
            available="24/7",
            is_primary=True,
        ),
        CrisisResource(
            name="Crisis Text Line",
            action="Text HOME to 686868",
            text="HOME to 686868",
            available="24/7",
        ),
    ],
    "AU": [
        CrisisResource(
            name="Lifeline Australia",
            action="Call 13 11 14",
            phone="13 11 14",
            url="https://www.lifeline.org.au",
            available="24/7",
            is_primary=True,
        ),
        CrisisResource(
            name="Beyond Blue",
            action="Call 1300 22 4636",
            phone="1300 22 4636",
            url="https://www.beyondblue.org.au",
            available="24/7",
        ),
    ],
    DEFAULT_REGION: [
        CrisisResource(
            name="International Association for Suicide Prevention",
            action="Find resources for your country",
            url="https://www.iasp.info/resources/Crisis_Centres/",
            available="See website",
            is_primary=True,
        ),
        CrisisResource(
            name="GriefShare",
            action="Find a support group",
            url="https://www.griefshare.org",
            available="Check local listings",
        ),
    ],
}


def get_crisis_resources(region_code: Optional[str] = None) -> List[CrisisResource]:
    """Get crisis resources for a region.

    Args:
        region_code: ISO-style country code ("US", "uk", ...); optional

    Returns:
        New list with the primary resource first
    """
    key = region_code.strip().upper() if isinstance(region_code, str) else ""
    resources = CRISIS_RESOURCES.get(key) or CRISIS_RESOURCES[DEFAULT_REGION]
    # Stable sort keeps directory order among non-primary entries
    return sorted(resources, key=lambda r: not r.is_primary)


GRIEF_TIPS: List[str] = [
    "It's okay to feel a mix of emotions. Grief isn't linear, and healing takes time.",
    "Many people find journaling helps process difficult feelings.",
    "Connecting with others who understand can be healing.",
    "Taking care of your physical health supports emotional healing.",
    "There's no 'right' way to grieve. Your journey is unique.",
    "It's okay to have good days. Joy and grief can coexist.",
    "Honoring your loved one's memory in meaningful ways can bring comfort.",
    "Grief can come in waves. Be gentle with yourself when it feels overwhelming.",
    "Seeking professional support is a sign of strength, not weakness.",
    "Small acts of self-care can make a big difference during difficult times.",
]


def get_random_grief_tip(rng: Optional[random.Random] = None) -> str:
    """Pick a grief tip to share during a long session."""
    return (rng or random).choice(GRIEF_TIPS)
