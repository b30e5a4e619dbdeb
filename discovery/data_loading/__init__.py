"""Data loading module: CSV loaders and the pandas-backed repository."""

from .loaders import (
    DataFrameRepository,
    load_interests,
    load_members,
    load_member_interests,
    load_groups,
    build_interests,
    build_members,
    build_groups,
)

__all__ = [
    "DataFrameRepository",
    "load_interests",
    "load_members",
    "load_member_interests",
    "load_groups",
    "build_interests",
    "build_members",
    "build_groups",
]
