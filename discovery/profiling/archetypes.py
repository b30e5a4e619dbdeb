"""
Personality archetypes keyed by the two strongest HEXACO dimensions.

The archetype table is a closed enumeration: every canonical pair key maps
to exactly one variant, and BALANCED_DISCIPLE is the explicit default arm.
"""

from enum import Enum
from typing import Dict, Optional


class Archetype(Enum):
    """Archetype labels. Values are the display labels."""
    # Honesty-Humility combinations
    HUMBLE_PEACEMAKER = "THE HUMBLE PEACEMAKER"
    DILIGENT_STEWARD = "THE DILIGENT STEWARD"
    SINCERE_GUARDIAN = "THE SINCERE GUARDIAN"
    PRINCIPLED_EXPLORER = "THE PRINCIPLED EXPLORER"
    AUTHENTIC_CONNECTOR = "THE AUTHENTIC CONNECTOR"

    # Emotionality combinations
    COMPASSIONATE_HARMONIZER = "THE COMPASSIONATE HARMONIZER"
    RELIABLE_NURTURER = "THE RELIABLE NURTURER"
    SENSITIVE_SEEKER = "THE SENSITIVE SEEKER"
    WARM_ADVOCATE = "THE WARM ADVOCATE"

    # Extraversion combinations
    FRIENDLY_DIPLOMAT = "THE FRIENDLY DIPLOMAT"
    ENERGETIC_ORGANIZER = "THE ENERGETIC ORGANIZER"
    BOLD_VISIONARY = "THE BOLD VISIONARY"

    # Agreeableness combinations
    STEADY_SUPPORTER = "THE STEADY SUPPORTER"
    GENTLE_INNOVATOR = "THE GENTLE INNOVATOR"

    # Conscientiousness combinations
    SYSTEMATIC_THINKER = "THE SYSTEMATIC THINKER"

    BALANCED_DISCIPLE = "THE BALANCED DISCIPLE"

    @property
    def label(self) -> str:
        return self.value

    @property
    def title(self) -> str:
        """Label without the leading article, title-cased ("Warm Advocate")."""
        return self.value.replace("THE ", "", 1).title()

    @classmethod
    def from_label(cls, label: Optional[str]) -> Optional["Archetype"]:
        """Parse a stored label; unknown labels map to the default arm."""
        if label is None or label == "":
            return None
        try:
            return cls(label)
        except ValueError:
            return cls.BALANCED_DISCIPLE


# Keys are the two dimension codes sorted alphabetically.
ARCHETYPE_BY_PAIR: Dict[str, Archetype] = {
    "AH": Archetype.HUMBLE_PEACEMAKER,
    "CH": Archetype.DILIGENT_STEWARD,
    "EH": Archetype.SINCERE_GUARDIAN,
    "HO": Archetype.PRINCIPLED_EXPLORER,
    "HX": Archetype.AUTHENTIC_CONNECTOR,
    "AE": Archetype.COMPASSIONATE_HARMONIZER,
    "CE": Archetype.RELIABLE_NURTURER,
    "EO": Archetype.SENSITIVE_SEEKER,
    "EX": Archetype.WARM_ADVOCATE,
    "AX": Archetype.FRIENDLY_DIPLOMAT,
    "CX": Archetype.ENERGETIC_ORGANIZER,
    "OX": Archetype.BOLD_VISIONARY,
    "AC": Archetype.STEADY_SUPPORTER,
    "AO": Archetype.GENTLE_INNOVATOR,
    "CO": Archetype.SYSTEMATIC_THINKER,
}


def archetype_for_pair(first: str, second: str) -> Archetype:
    """Look up the archetype for two dimension codes in any order."""
    key = "".join(sorted((first, second)))
    return ARCHETYPE_BY_PAIR.get(key, Archetype.BALANCED_DISCIPLE)
