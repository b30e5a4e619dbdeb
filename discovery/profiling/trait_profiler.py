"""
HEXACO trait profiler.

Handles:
- Loading and validating the questionnaire item bank
- Reverse scoring of items
- Per-dimension aggregate computation
- Archetype classification from the two strongest dimensions

The profiler runs once at profile-completion time; its output (trait vector
and archetype) is stored with the member and only read by match-reason
generation afterwards.
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Mapping, Optional

import numpy as np
import yaml

from ..schema import TraitVector, TRAIT_DIMENSIONS
from .archetypes import Archetype, archetype_for_pair

logger = logging.getLogger(__name__)

DEFAULT_ITEMS_PATH = Path(__file__).parent / "hexaco_items.yaml"

QUESTION_IDS = frozenset(range(1, 61))

# Fallback for a dimension with no answered items (scale midpoint).
NEUTRAL_SCORE = 3.0

HIGH_SCORE = 4.0
LOW_SCORE = 2.0

DIMENSION_DESCRIPTIONS: Dict[str, Dict[str, str]] = {
    "H": {
        "high": "You value fairness, sincerity, and modesty. You avoid manipulation and genuinely care about ethical conduct.",
        "low": "You may be comfortable with self-promotion and strategic positioning. You prioritize results over strict adherence to rules.",
        "mid": "You balance integrity with pragmatism, knowing when to stand firm and when to be flexible.",
    },
    "E": {
        "high": "You experience emotions deeply and value emotional connection. You seek support and express feelings openly.",
        "low": "You remain emotionally stable under pressure. You handle stress independently without needing reassurance.",
        "mid": "You balance emotional awareness with resilience, connecting with others while maintaining composure.",
    },
    "X": {
        "high": "You thrive in social settings and actively seek connection. You energize groups and enjoy being around people.",
        "low": "You prefer solitude or small groups. You recharge through quiet reflection rather than social interaction.",
        "mid": "You adapt to both social and solitary contexts, comfortable in groups but also valuing alone time.",
    },
    "A": {
        "high": "You are patient, forgiving, and slow to anger. You prioritize harmony and give others the benefit of the doubt.",
        "low": "You hold firm boundaries and don't tolerate mistreatment. You express disagreement directly when needed.",
        "mid": "You balance grace with accountability, extending patience while maintaining healthy boundaries.",
    },
    "C": {
        "high": "You are organized, disciplined, and detail-oriented. You plan ahead and follow through on commitments.",
        "low": "You prefer spontaneity and flexibility. You adapt quickly and don't let structure constrain you.",
        "mid": "You balance planning with adaptability, organized when needed but comfortable with improvisation.",
    },
    "O": {
        "high": "You are intellectually curious and creative. You enjoy exploring new ideas, art, and unconventional perspectives.",
        "low": "You prefer practical, concrete approaches. You value tradition and established methods over novelty.",
        "mid": "You appreciate both innovation and tradition, open to new ideas while respecting what works.",
    },
}


def load_trait_mapping(filepath: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the questionnaire item bank from YAML.

    The mapping file specifies:
    - Which question ids belong to which HEXACO dimension
    - Which items are reverse-scored
    - Scale min/max for reverse scoring calculation

    Args:
        filepath: Path to the mapping YAML file (defaults to the packaged
            HEXACO-60 item bank)

    Returns:
        Dictionary with mapping configuration:
        {
            "scale": {"min": 1, "max": 5},
            "dimensions": {
                "H": {"name": ..., "items": [1, 3, ...], "reverse_scored": [3, ...]},
                ...
            }
        }

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the mapping is invalid or incomplete
    """
    path = Path(filepath) if filepath is not None else DEFAULT_ITEMS_PATH
    if not path.exists():
        raise FileNotFoundError(f"Trait mapping file not found: {path}")

    with open(path, "r") as f:
        mapping = yaml.safe_load(f)

    validate_trait_mapping(mapping)

    total_items = sum(len(d["items"]) for d in mapping["dimensions"].values())
    logger.debug(f"Loaded trait mapping for {len(mapping['dimensions'])} dimensions, {total_items} items")
    return mapping


def validate_trait_mapping(mapping: Dict[str, Any]) -> None:
    """
    Validate the trait mapping configuration.

    Checks:
    - Required keys are present
    - All six HEXACO dimensions are defined
    - Each dimension has a non-empty items list
    - Reverse-scored items are a subset of items
    - No question id belongs to more than one dimension
    - Items cover question ids 1..60 exactly

    Args:
        mapping: The loaded mapping dictionary

    Raises:
        ValueError: If validation fails
    """
    if not isinstance(mapping, dict):
        raise ValueError("Trait mapping must be a mapping")

    if "scale" not in mapping:
        raise ValueError("Trait mapping missing 'scale' configuration")

    if "dimensions" not in mapping:
        raise ValueError("Trait mapping missing 'dimensions' configuration")

    scale = mapping["scale"]
    if scale.get("min") is None or scale.get("max") is None or scale["min"] >= scale["max"]:
        raise ValueError(f"Trait mapping has an invalid scale: {scale}")

    missing = set(TRAIT_DIMENSIONS) - set(mapping["dimensions"].keys())
    if missing:
        raise ValueError(f"Trait mapping missing dimensions: {sorted(missing)}")

    seen: Dict[int, str] = {}
    for dim_name, dim_config in mapping["dimensions"].items():
        items = dim_config.get("items")
        if not isinstance(items, list):
            raise ValueError(f"Dimension '{dim_name}' items must be a list")
        if len(items) == 0:
            raise ValueError(f"Dimension '{dim_name}' has no items")

        for item in items:
            if item not in QUESTION_IDS:
                raise ValueError(f"Dimension '{dim_name}' has out-of-range question id: {item}")
            if item in seen:
                raise ValueError(
                    f"Question {item} assigned to both '{seen[item]}' and '{dim_name}'"
                )
            seen[item] = dim_name

        invalid = set(dim_config.get("reverse_scored", [])) - set(items)
        if invalid:
            raise ValueError(
                f"Dimension '{dim_name}' has reverse_scored items not in items list: {invalid}"
            )

    uncovered = QUESTION_IDS - set(seen)
    if uncovered:
        raise ValueError(f"Trait mapping does not cover question ids: {sorted(uncovered)}")


def _round_half_up(value: float) -> float:
    """Round to one decimal, halves away from zero (3.25 -> 3.3)."""
    return float(np.floor(value * 10.0 + 0.5) / 10.0)


class TraitProfiler:
    """
    Scores a completed personality questionnaire.

    Attributes:
        mapping: Item bank from load_trait_mapping()
        question_ids: Every question id the questionnaire must answer
    """

    def __init__(self, mapping: Optional[Dict[str, Any]] = None):
        self.mapping = mapping if mapping is not None else load_trait_mapping()
        validate_trait_mapping(self.mapping)

        self.scale_min = self.mapping["scale"]["min"]
        self.scale_max = self.mapping["scale"]["max"]

        self._items: Dict[str, np.ndarray] = {}
        self._reverse_mask: Dict[str, np.ndarray] = {}
        for code in TRAIT_DIMENSIONS:
            dim_config = self.mapping["dimensions"][code]
            reverse = set(dim_config.get("reverse_scored", []))
            self._items[code] = np.array(dim_config["items"], dtype=int)
            self._reverse_mask[code] = np.array(
                [item in reverse for item in dim_config["items"]], dtype=bool
            )

        self.question_ids = sorted(
            int(item) for items in self._items.values() for item in items
        )

    def score(self, responses: Mapping[int, int]) -> Optional[TraitVector]:
        """
        Turn questionnaire responses into a trait vector.

        Args:
            responses: Question id -> Likert response

        Returns:
            TraitVector, or None if any question is unanswered

        Raises:
            ValueError: If a response lies outside the Likert scale
        """
        missing = [q for q in self.question_ids if responses.get(q) is None]
        if missing:
            logger.debug(f"Questionnaire incomplete: {len(missing)} unanswered items")
            return None

        for q in self.question_ids:
            value = responses[q]
            if not self.scale_min <= value <= self.scale_max:
                raise ValueError(
                    f"Response to question {q} must be in "
                    f"[{self.scale_min}, {self.scale_max}], got {value}"
                )

        reverse_value = self.scale_min + self.scale_max
        scores = {}
        for code in TRAIT_DIMENSIONS:
            items = self._items[code]
            if items.size == 0:
                scores[code] = NEUTRAL_SCORE
                continue
            raw = np.array([responses[int(q)] for q in items], dtype=float)
            effective = np.where(self._reverse_mask[code], reverse_value - raw, raw)
            scores[code] = _round_half_up(effective.mean())

        return TraitVector(**scores)

    def classify(self, vector: TraitVector) -> Archetype:
        """
        Assign an archetype from the two strongest dimensions.

        Dimensions are sorted descending by score with a stable sort, so a
        tie between the 2nd and 3rd ranked dimension goes to the one
        declared first (H, E, X, A, C, O).
        """
        ranked = sorted(TRAIT_DIMENSIONS, key=lambda code: -getattr(vector, code))
        return archetype_for_pair(ranked[0], ranked[1])

    def profile(self, responses: Mapping[int, int]) -> Optional[Dict[str, Any]]:
        """Score and classify in one step; None if incomplete."""
        vector = self.score(responses)
        if vector is None:
            return None
        return {"traits": vector, "archetype": self.classify(vector)}

    def dimension_names(self) -> List[str]:
        return [self.mapping["dimensions"][code].get("name", code) for code in TRAIT_DIMENSIONS]


def describe_dimension(code: str, score: float) -> str:
    """Return the high/low/mid description for a dimension score."""
    descriptions = DIMENSION_DESCRIPTIONS[code]
    if score >= HIGH_SCORE:
        return descriptions["high"]
    if score <= LOW_SCORE:
        return descriptions["low"]
    return descriptions["mid"]


def trait_affinity(a: TraitVector, b: TraitVector) -> float:
    """
    Closeness of two trait vectors in [0, 1].

    1 - mean absolute difference / 4, where 4 is the widest possible gap on
    a 1-5 scale. Used for match reasons only, never for ranking.
    """
    diff = np.abs(np.array(a.as_list()) - np.array(b.as_list()))
    return float(np.clip(1.0 - diff.mean() / 4.0, 0.0, 1.0))
