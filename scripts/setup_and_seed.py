"""
One-command setup script for the Conservation Alert system.
Creates MongoDB indexes and seeds a demo agent with a small book of business.

Usage: python scripts/setup_and_seed.py
"""

import sys
import json
from datetime import timedelta
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from conservation.config import get_settings
from conservation.core.mongodb_client import get_database, Collections
from conservation.core.repository import ConservationRepository
from conservation.utils.time_utils import utcnow


def print_step(step: str, status: str = "..."):
    """Print step with status."""
    icons = {
        "...": "...",
        "done": "done",
        "skip": "skip",
        "fail": "FAIL"
    }
    print(f"  [{icons.get(status, status)}] {step}")


def print_header(text: str):
    """Print a header."""
    print(f"\n{'=' * 60}")
    print(f"  {text}")
    print(f"{'=' * 60}")


def load_json_file(filename: str) -> dict:
    """Load a JSON file from the data directory."""
    settings = get_settings()
    file_path = settings.project_root / "data" / filename
    with open(file_path, 'r') as f:
        return json.load(f)


def seed_collection(collection_name: str, items: list) -> int:
    """
    Insert documents that are not there yet, keyed by _id.

    Returns:
        Number of documents inserted
    """
    collection = get_database()[collection_name]
    inserted = 0
    for item in items:
        if collection.count_documents({"_id": item["_id"]}, limit=1):
            print_step(f"{collection_name}: {item['_id']} exists", "skip")
            continue
        collection.insert_one(item)
        inserted += 1
    print_step(f"{collection_name}: Inserted {inserted} documents", "done")
    return inserted


def prepare_clients(clients: list) -> list:
    """Turn each policy's written_days_ago into a created_at timestamp."""
    now = utcnow()
    for client in clients:
        for policy in client.get("policies", []):
            days_ago = policy.pop("written_days_ago", None)
            policy["created_at"] = now - timedelta(days=days_ago) if days_ago is not None else None
    return clients


def main():
    """Main setup function."""
    print_header("Conservation Alerts - Setup")

    print("\nChecking environment...")
    settings = get_settings()

    if not settings.fireworks_api_key:
        print("\n  WARNING: Fireworks API key not configured!")
        print("  Set FIREWORKS_API_KEY in your .env file before creating alerts")
    else:
        print_step("Fireworks API key configured", "done")

    print_step(
        "Twilio configured" if settings.twilio_configured else "Twilio not configured (SMS disabled)",
        "done" if settings.twilio_configured else "skip",
    )

    print("\nConnecting to MongoDB...")
    try:
        repository = ConservationRepository()
        repository.ping()
        print_step(f"Connected to database: {settings.mongodb_database}", "done")
    except Exception as e:
        print(f"\n  ERROR: Could not connect to MongoDB!")
        print(f"  {e}")
        print("\n  Please check your MONGODB_URI in .env")
        print("  For local: mongodb://localhost:27017")
        sys.exit(1)

    print_header("Creating Indexes")
    repository.ensure_indexes()
    print_step("agents, clients, conservation_alerts, notifications", "done")

    print_header("Seeding Demo Book")
    data = load_json_file("demo_book.json")
    total_docs = 0
    total_docs += seed_collection(Collections.AGENTS, data.get("agents", []))
    total_docs += seed_collection(Collections.CLIENTS, prepare_clients(data.get("clients", [])))

    print_header("Setup Complete!")
    print(f"""
  Total documents seeded: {total_docs}

  Next steps:
  1. Start the API server:
     python -m uvicorn conservation.main:app --reload

  2. Or create an alert from the CLI:
     python -m cli.create_alert --agent demo-agent --text "Policy WL-2024-88123 for John Smith lapsed for non-payment"

  3. Run the outreach sweep by hand:
     python -m cli.run_sweep

  API docs will be available at: http://localhost:8000/docs
    """)


if __name__ == "__main__":
    main()
