"""
CLI tool for creating a conservation alert from a carrier notice.
Usage: python -m cli.create_alert --agent <agent_id> <notice_file_or_text>
"""

import sys
import json
import argparse
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from conservation.pipeline.models import AlertPriority, AlertSource, CreateAlertResult
from conservation.services import build_services


# ANSI color codes for terminal output
class Colors:
    HEADER = '\033[95m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'


def print_step(step_num: int, name: str, status: str):
    """Print step progress."""
    if status == "running":
        icon = "..."
        color = Colors.YELLOW
    else:
        icon = "done"
        color = Colors.GREEN

    print(f"  [{step_num}/3] {name:<20} {color}{icon}{Colors.ENDC}")


def print_result(result: CreateAlertResult):
    """Print the created alert in a formatted way."""
    alert = result.alert

    print("\n" + "=" * 70)
    print(f"{Colors.BOLD}{Colors.GREEN}        CONSERVATION ALERT CREATED{Colors.ENDC}")
    print("=" * 70)

    print(f"\n{Colors.BOLD}Client:{Colors.ENDC} {alert.client_name}")
    print(f"{Colors.BOLD}Policy:{Colors.ENDC} {alert.policy_number} ({alert.carrier})")
    print(f"{Colors.BOLD}Reason:{Colors.ENDC} {alert.reason.value}")

    if result.matched:
        age = f"{alert.policy_age} days old" if alert.policy_age is not None else "age unknown"
        print(f"\n{Colors.GREEN}Matched{Colors.ENDC} client {alert.client_id}, policy {alert.policy_id} ({age})")
    else:
        print(f"\n{Colors.YELLOW}No matching client found{Colors.ENDC}")

    color = Colors.RED if alert.priority == AlertPriority.HIGH else Colors.CYAN
    print(f"{Colors.BOLD}Priority:{Colors.ENDC} {color}{alert.priority.value}{Colors.ENDC}")
    print(f"{Colors.BOLD}Status:{Colors.ENDC} {alert.status.value}")
    if alert.scheduled_outreach_at:
        print(f"{Colors.BOLD}Outreach at:{Colors.ENDC} {alert.scheduled_outreach_at:%Y-%m-%d %H:%M} UTC")

    if alert.ai_insight:
        print(f"\n{Colors.BOLD}Saveability:{Colors.ENDC} {alert.ai_insight}")

    if alert.initial_message:
        print(f"\n{Colors.BOLD}Initial message:{Colors.ENDC}\n  {alert.initial_message}")

    print(f"\n{Colors.BOLD}Alert ID:{Colors.ENDC} {result.alert_id}")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Create a conservation alert from a carrier lapse/cancellation notice",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m cli.create_alert --agent demo-agent notices/lapse.txt
  python -m cli.create_alert --agent demo-agent --text "Policy WL-88123 lapsed..."
  python -m cli.create_alert --agent demo-agent notices/lapse.txt --json
        """
    )

    parser.add_argument(
        "file",
        nargs="?",
        help="Path to a file with the carrier notice"
    )
    parser.add_argument(
        "--agent", "-a",
        required=True,
        help="Agent id that owns the book of business"
    )
    parser.add_argument(
        "--text", "-t",
        help="Notice content as text (alternative to file)"
    )
    parser.add_argument(
        "--json", "-j",
        action="store_true",
        help="Output result as JSON only"
    )

    args = parser.parse_args()

    raw_text = None

    if args.text:
        raw_text = args.text
    elif args.file:
        file_path = Path(args.file)
        if not file_path.exists():
            print(f"{Colors.RED}Error: File not found: {args.file}{Colors.ENDC}")
            sys.exit(1)
        raw_text = file_path.read_text()
    else:
        # Try reading from stdin
        if not sys.stdin.isatty():
            raw_text = sys.stdin.read()
        else:
            parser.print_help()
            sys.exit(1)

    if not raw_text or not raw_text.strip():
        print(f"{Colors.RED}Error: Notice text is empty{Colors.ENDC}")
        sys.exit(1)

    def progress_callback(step: int, name: str, status: str):
        if not args.json:
            print_step(step, name, status)

    if not args.json:
        print(f"\n{Colors.BOLD}Conservation Alert{Colors.ENDC}")
        print("-" * 40)

    try:
        services = build_services()
        services.orchestrator.progress_callback = progress_callback
        result = services.orchestrator.create_alert(args.agent, raw_text, AlertSource.PASTE)

        if args.json:
            print(json.dumps(result.model_dump(mode="json"), indent=2))
        else:
            print_result(result)

    except Exception as e:
        if args.json:
            print(json.dumps({"success": False, "error": str(e)}))
        else:
            print(f"\n{Colors.RED}Error: {e}{Colors.ENDC}")
        sys.exit(1)


if __name__ == "__main__":
    main()
