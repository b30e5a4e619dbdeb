"""
Data loading and the reference pandas-backed repository.

This module loads member, interest and group tables from CSV files (or
takes ready-made DataFrames) and joins them once into the typed records
the scorers consume. List-valued columns (group ids, block lists, tags,
preferred types) are stored as ';'-separated strings.

Expected tables:
- interests:        id, category, name
- members:          id, latitude, longitude, group_ids, blocked_ids,
                    archetype, preferred_types, size_min, size_max,
                    and optionally H, E, X, A, C, O
- member_interests: member_id, interest_id, proficiency
- groups:           id, type, min_size, max_size, current_size,
                    latitude, longitude, tags, is_virtual
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from ..profiling.archetypes import Archetype
from ..schema import (
    GeoPoint,
    Group,
    GroupPreferences,
    Interest,
    InterestLevel,
    Member,
    TraitVector,
    TRAIT_DIMENSIONS,
)
from ..scoring.proximity import haversine_km_batch

logger = logging.getLogger(__name__)

LIST_SEPARATOR = ";"

REQUIRED_COLUMNS = {
    "interests": ["id", "category", "name"],
    "members": ["id"],
    "member_interests": ["member_id", "interest_id", "proficiency"],
    "groups": ["id", "type"],
}

# Identifier and list-valued columns, kept as text so numeric ids survive.
STRING_COLUMNS = (
    "id", "member_id", "interest_id", "type", "archetype",
    "group_ids", "blocked_ids", "preferred_types", "tags",
)


def _load_table(filepath: str, table: str, delimiter: str = ",") -> pd.DataFrame:
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"{table} file not found: {filepath}")

    logger.info(f"Loading {table} from {filepath}")
    header = pd.read_csv(filepath, sep=delimiter, nrows=0).columns
    dtypes = {c: str for c in STRING_COLUMNS if c in header}
    df = pd.read_csv(filepath, sep=delimiter, dtype=dtypes)

    missing = validate_columns(df, table)
    if missing:
        raise ValueError(f"{table} file {filepath} missing columns: {missing}")

    logger.info(f"Loaded {len(df)} {table} rows")
    return df


def validate_columns(df: pd.DataFrame, table: str) -> List[str]:
    """
    Check that a DataFrame has the columns a table requires.

    Returns:
        List of missing column names (empty if all present)
    """
    return [c for c in REQUIRED_COLUMNS[table] if c not in df.columns]


def load_interests(filepath: str, delimiter: str = ",") -> pd.DataFrame:
    return _load_table(filepath, "interests", delimiter)


def load_members(filepath: str, delimiter: str = ",") -> pd.DataFrame:
    return _load_table(filepath, "members", delimiter)


def load_member_interests(filepath: str, delimiter: str = ",") -> pd.DataFrame:
    df = _load_table(filepath, "member_interests", delimiter)
    return df.astype({"member_id": str, "interest_id": str})


def load_groups(filepath: str, delimiter: str = ",") -> pd.DataFrame:
    return _load_table(filepath, "groups", delimiter)


# ----------------------------------------------------------------------
# Cell parsing
# ----------------------------------------------------------------------

def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and np.isnan(value))


def _split_list(value: Any) -> Tuple[str, ...]:
    if _is_missing(value):
        return ()
    if isinstance(value, float) and value.is_integer():
        # A single numeric id in a DataFrame built without string dtypes.
        value = int(value)
    return tuple(part.strip() for part in str(value).split(LIST_SEPARATOR) if part.strip())


def _optional_int(value: Any) -> Optional[int]:
    return None if _is_missing(value) else int(value)


def _int_or(value: Any, default: int) -> int:
    return default if _is_missing(value) else int(value)


def _location(row: Mapping[str, Any]) -> Optional[GeoPoint]:
    lat, lon = row.get("latitude"), row.get("longitude")
    if _is_missing(lat) or _is_missing(lon):
        return None
    return GeoPoint(float(lat), float(lon))


def _traits(row: Mapping[str, Any]) -> Optional[TraitVector]:
    values = [row.get(code) for code in TRAIT_DIMENSIONS]
    if any(_is_missing(v) for v in values):
        return None
    return TraitVector(*(float(v) for v in values))


def _archetype(value: Any) -> Optional[Archetype]:
    return None if _is_missing(value) else Archetype.from_label(str(value))


def _proficiency(value: Any) -> int:
    # Missing levels become 0 so the aggregator rejects the record.
    return 0 if _is_missing(value) else int(value)


def _truthy(value: Any) -> bool:
    if _is_missing(value):
        return False
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


# ----------------------------------------------------------------------
# Record construction
# ----------------------------------------------------------------------

def build_interests(df: pd.DataFrame) -> Dict[str, Interest]:
    """Interest id -> Interest."""
    return {
        str(row["id"]): Interest(str(row["id"]), str(row["category"]), str(row["name"]))
        for row in df.to_dict("records")
    }


def build_members(members_df: pd.DataFrame, member_interests_df: pd.DataFrame) -> Dict[str, Member]:
    """
    Join members with their interest levels.

    Args:
        members_df: One row per member
        member_interests_df: One row per (member, interest) pair

    Returns:
        Member id -> Member, in the members table's row order
    """
    levels: Dict[str, List[InterestLevel]] = {}
    for row in member_interests_df.to_dict("records"):
        levels.setdefault(str(row["member_id"]), []).append(
            InterestLevel(str(row["interest_id"]), _proficiency(row["proficiency"]))
        )

    members = {}
    for row in members_df.to_dict("records"):
        member_id = str(row["id"])
        preferences = GroupPreferences(
            types=_split_list(row.get("preferred_types")),
            size_min=_optional_int(row.get("size_min")),
            size_max=_optional_int(row.get("size_max")),
        )
        members[member_id] = Member(
            id=member_id,
            location=_location(row),
            interests=tuple(levels.get(member_id, ())),
            traits=_traits(row),
            archetype=_archetype(row.get("archetype")),
            group_ids=_split_list(row.get("group_ids")),
            blocked_ids=_split_list(row.get("blocked_ids")),
            preferences=preferences,
        )
    return members


def build_groups(df: pd.DataFrame) -> Dict[str, Group]:
    """Group id -> Group."""
    groups = {}
    for row in df.to_dict("records"):
        group_id = str(row["id"])
        groups[group_id] = Group(
            id=group_id,
            type=str(row["type"]),
            min_size=_int_or(row.get("min_size"), 1),
            max_size=_optional_int(row.get("max_size")),
            current_size=_int_or(row.get("current_size"), 0),
            location=_location(row),
            tags=_split_list(row.get("tags")),
            is_virtual=_truthy(row.get("is_virtual")),
        )
    return groups


class DataFrameRepository:
    """
    In-memory Repository backed by pandas tables.

    Records are joined once at construction; every read afterwards is a
    dictionary lookup, so concurrent reads from the service's fetch pool
    are safe.
    """

    def __init__(
        self,
        members: pd.DataFrame,
        member_interests: pd.DataFrame,
        interests: pd.DataFrame,
        groups: Optional[pd.DataFrame] = None,
    ):
        for table, df in (("members", members), ("member_interests", member_interests),
                          ("interests", interests)):
            missing = validate_columns(df, table)
            if missing:
                raise ValueError(f"{table} table missing columns: {missing}")
        if groups is None:
            groups = pd.DataFrame(columns=REQUIRED_COLUMNS["groups"])
        elif validate_columns(groups, "groups"):
            raise ValueError(f"groups table missing columns: {validate_columns(groups, 'groups')}")

        self._interests = build_interests(interests)
        self._members = build_members(members, member_interests)
        self._groups = build_groups(groups)
        logger.info(
            f"Repository ready: {len(self._members)} members, "
            f"{len(self._groups)} groups, {len(self._interests)} interests"
        )

    @classmethod
    def from_directory(cls, data_dir: str, delimiter: str = ",") -> "DataFrameRepository":
        """
        Load members.csv, member_interests.csv, interests.csv and (if
        present) groups.csv from a directory.
        """
        root = Path(data_dir)
        groups_path = root / "groups.csv"
        return cls(
            members=load_members(str(root / "members.csv"), delimiter),
            member_interests=load_member_interests(str(root / "member_interests.csv"), delimiter),
            interests=load_interests(str(root / "interests.csv"), delimiter),
            groups=load_groups(str(groups_path), delimiter) if groups_path.exists() else None,
        )

    def get_members(self, ids: Iterable[str]) -> List[Member]:
        return [self._members[i] for i in ids if i in self._members]

    def get_groups(self, ids: Iterable[str]) -> List[Group]:
        return [self._groups[i] for i in ids if i in self._groups]

    def list_candidate_members(
        self, excluding: Iterable[str], filters: Optional[Mapping[str, Any]] = None
    ) -> List[Member]:
        filters = filters or {}
        excluded = set(excluding)
        candidates = [m for m in self._members.values() if m.id not in excluded]
        limit = filters.get("limit")
        return candidates[:limit] if limit is not None else candidates

    def list_candidate_groups(
        self, excluding: Iterable[str], filters: Optional[Mapping[str, Any]] = None
    ) -> List[Group]:
        filters = filters or {}
        excluded = set(excluding)
        candidates = [g for g in self._groups.values() if g.id not in excluded]
        if filters.get("exclude_full"):
            candidates = [g for g in candidates if not g.is_full]
        limit = filters.get("limit")
        return candidates[:limit] if limit is not None else candidates

    def get_interests_by_ids(self, ids: Iterable[str]) -> Dict[str, Interest]:
        return {i: self._interests[i] for i in ids if i in self._interests}

    def count_members_nearby(
        self, point: GeoPoint, radius_km: float, excluding: Iterable[str] = ()
    ) -> int:
        excluded = set(excluding)
        located = [
            m.location for m in self._members.values()
            if m.id not in excluded and m.location is not None and m.location.is_valid
        ]
        if not located:
            return 0
        distances = haversine_km_batch(point, located)
        return int(np.count_nonzero(distances <= radius_km))
