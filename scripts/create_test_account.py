import sys
import os
import argparse

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from app.core.exceptions import LedgerError
from app.core.services import LedgerServices


def create_test_account(wallet: str, username: str = None, deposit: int = 0, db_path: str = None):
    """Registers a test account and optionally funds it (journaled as an adjustment)."""
    services = LedgerServices.open(db_path)
    try:
        account, created = services.accounts.register(wallet, username)
        if created:
            print(f"Created account '{account.identity}' ({account.display_name}).")
        else:
            print(f"Account '{account.identity}' already exists.")

        if deposit:
            change = services.accounts.apply_delta(account.identity, deposit, kind="adjustment")
            print(f"Balance: {change.previous_balance} -> {change.balance}")
    except LedgerError as e:
        print(f"Failed: {e.message}")
        sys.exit(1)
    finally:
        services.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Register and fund a test account")
    parser.add_argument("wallet", nargs="?", default="0xtestwallet")
    parser.add_argument("--username", default=None)
    parser.add_argument("--deposit", type=int, default=1000)
    parser.add_argument("--db", default=None, help="Database file (defaults to the configured path)")
    args = parser.parse_args()
    create_test_account(args.wallet, args.username, args.deposit, args.db)
