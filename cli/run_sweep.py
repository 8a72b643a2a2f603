"""
CLI tool for running one outreach sweep outside the cron schedule.
Usage: python -m cli.run_sweep [--json]
"""

import sys
import json
import argparse
import logging
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from conservation.services import build_services


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Fire due outreach and drip follow-ups for every agent"
    )
    parser.add_argument(
        "--json", "-j",
        action="store_true",
        help="Output counters as JSON only"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log each alert as it is processed"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        result = build_services().scheduler.run_sweep()
    except Exception as e:
        if args.json:
            print(json.dumps({"success": False, "error": str(e)}))
        else:
            print(f"Sweep failed: {e}")
        sys.exit(1)

    if args.json:
        print(json.dumps({"success": True, **result.model_dump(mode="json")}, indent=2))
        return

    print(f"\nOutreach sweep ({result.started_at:%Y-%m-%d %H:%M} UTC)")
    print("-" * 40)
    print(f"  Outreach fired: {result.outreach_fired}")
    print(f"  Drips sent:     {result.drips_sent}")
    print(f"  Skipped:        {result.skipped}")
    print(f"  Errors:         {result.errors}")

    sys.exit(1 if result.errors else 0)


if __name__ == "__main__":
    main()
