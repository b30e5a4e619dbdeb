"""Personality profiling module (HEXACO questionnaire scoring)."""

from .archetypes import Archetype, archetype_for_pair
from .trait_profiler import (
    TraitProfiler,
    load_trait_mapping,
    describe_dimension,
    trait_affinity,
)

__all__ = [
    "Archetype",
    "archetype_for_pair",
    "TraitProfiler",
    "load_trait_mapping",
    "describe_dimension",
    "trait_affinity",
]
