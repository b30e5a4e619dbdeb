"""
Discovery & Compatibility Engine

This package ranks the members and groups a member is most likely to want
to connect with, explains each match, and keeps those rankings cheap to
serve under repeated requests.

Key Design Decisions:
- Scores are computed from current profile state only (no learning)
- Greedy per-request top-K ranking, not a two-sided assignment solver
- Sub-scores are combined with fixed, configurable weights that are
  renormalised over whichever signals are available
- The result cache is an explicit service instance injected into the
  facade, never a module-level singleton
"""

__version__ = "1.0.0"
