import sys
import os
import argparse

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from app.core.services import LedgerServices


def reset_database():
    """Deletes games, rooms, the journal and accounts (children first)."""
    services = LedgerServices.open()
    try:
        print(f"Resetting database at {services.db.db_path}...")
        services.db.clear_all_data()
        print("All tables have been cleared.")
    finally:
        services.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Clear all ledger data")
    parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    args = parser.parse_args()

    if not args.yes and input("This deletes every account, room and game. Continue? [y/N] ").lower() != "y":
        print("Aborted.")
        sys.exit(0)
    reset_database()
