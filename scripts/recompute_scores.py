"""
scripts/recompute_scores.py — Re-score stored lead profiles.

Run after changing question weights, option scores or category thresholds
so every profile's score, category and completeness match the new config.

Usage:
    python scripts/recompute_scores.py [--lead-id ID] [--log-level DEBUG]
"""

import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from qualifier.config import settings
from qualifier.services.profile_service import ProfileService

logger = logging.getLogger(__name__)


def run(lead_id: str | None = None, service: ProfileService | None = None) -> int:
    """Recompute one lead, or all of them. Returns how many profiles were touched."""
    service = service or ProfileService()
    if lead_id:
        profile = service.recompute(lead_id)
        logger.info(
            "Lead %s: score=%d category=%s completeness=%d%%",
            profile.id, profile.lead_score, profile.lead_category.value, profile.profile_completeness,
        )
        return 1
    return service.recompute_all()


def main() -> None:
    parser = argparse.ArgumentParser(description="Recompute lead scores and categories.")
    parser.add_argument("--lead-id", default=None, help="Only recompute this lead")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    count = run(args.lead_id)
    logger.info("Done: %d profile(s) recomputed.", count)


if __name__ == "__main__":
    main()
