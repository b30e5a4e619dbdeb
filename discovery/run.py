"""
Command-line runner for the discovery engine.

Loads a CSV dataset into the reference repository and prints ranked
matches (or a questionnaire profile) as JSON.

Usage:
    python -m discovery.run --data-dir data/ --member A
    python -m discovery.run --data-dir data/ --member A --mode groups --limit 5
    python -m discovery.run --data-dir data/ --member A --mode nearby --radius-km 10
    python -m discovery.run --mode profile --responses answers.json
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

MODES = ("persons", "groups", "nearby", "profile")


def run_profile(responses_path: str) -> Dict[str, Any]:
    """Score a questionnaire stored as {question_id: response} JSON."""
    from .profiling import TraitProfiler, describe_dimension

    with open(responses_path, "r") as f:
        raw = json.load(f)
    # Unanswered questions may be stored as null.
    responses = {int(q): int(v) for q, v in raw.items() if v is not None}

    profiler = TraitProfiler()
    result = profiler.profile(responses)
    if result is None:
        missing = [q for q in profiler.question_ids if q not in responses]
        return {"complete": False, "missing": missing}

    traits = result["traits"]
    return {
        "complete": True,
        "traits": traits.as_dict(),
        "archetype": result["archetype"].label,
        "descriptions": {
            code: describe_dimension(code, score) for code, score in traits.as_dict().items()
        },
    }


def run_discovery(
    data_dir: str,
    member_id: str,
    mode: str = "persons",
    config_path: Optional[str] = None,
    limit: Optional[int] = None,
    min_score: Optional[float] = None,
    radius_km: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Run one discovery request against a CSV dataset.

    Args:
        data_dir: Directory with members.csv, member_interests.csv,
            interests.csv and optionally groups.csv
        member_id: Requesting member
        mode: "persons", "groups" or "nearby"
        config_path: Optional YAML override for the default configuration
        limit: Maximum number of results
        min_score: Minimum overall score
        radius_km: Radius for nearby mode

    Returns:
        JSON-serialisable result dictionary
    """
    from .configs import load_config, validate_config, setup_logging
    from .data_loading import DataFrameRepository
    from .service import DiscoveryService

    config = load_config(config_path)
    setup_logging(config.get("global", {}).get("log_level", "INFO"))

    issues = validate_config(config)
    if issues:
        for issue in issues:
            logger.warning(f"Config issue: {issue}")

    repository = DataFrameRepository.from_directory(data_dir)
    with DiscoveryService.from_config(repository, config) as service:
        if mode == "nearby":
            return {"member": member_id, "nearby": service.get_nearby_count(member_id, radius_km)}

        if mode == "groups":
            results = service.find_compatible_groups(member_id, limit=limit, min_score=min_score)
        else:
            results = service.find_compatible_persons(member_id, limit=limit, min_score=min_score)

    return {"member": member_id, "mode": mode, "results": [r.to_dict() for r in results]}


def main():
    """Main entry point for the runner."""
    parser = argparse.ArgumentParser(
        description="Rank compatible members and groups from a CSV dataset"
    )
    parser.add_argument(
        "--mode",
        choices=MODES,
        default="persons",
        help="What to compute"
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory containing the CSV tables"
    )
    parser.add_argument(
        "--member",
        type=str,
        default=None,
        help="Requesting member id"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML file overriding the default configuration"
    )
    parser.add_argument("--limit", type=int, default=None, help="Maximum number of results")
    parser.add_argument("--min-score", type=float, default=None, help="Minimum overall score")
    parser.add_argument("--radius-km", type=float, default=None, help="Radius for nearby mode")
    parser.add_argument(
        "--responses",
        type=str,
        default=None,
        help="Questionnaire responses JSON for profile mode"
    )

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        if args.mode == "profile":
            if not args.responses:
                parser.error("--responses is required for profile mode")
            output = run_profile(args.responses)
        else:
            if not args.data_dir or not args.member:
                parser.error("--data-dir and --member are required")
            output = run_discovery(
                args.data_dir,
                args.member,
                mode=args.mode,
                config_path=args.config,
                limit=args.limit,
                min_score=args.min_score,
                radius_km=args.radius_km,
            )
    except Exception as e:
        logger.exception(f"Discovery failed with error: {e}")
        return 1

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
