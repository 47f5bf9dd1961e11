"""Create the order store tables and load sample orders."""

import argparse
import sys
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.config.settings import DEFAULT_DB_PATH
from order_store import SQLiteOrderRepository, init_order_store_db, seed_sample_orders


def main():
    parser = argparse.ArgumentParser(description="Seed the order store with sample orders")
    parser.add_argument(
        "--db",
        type=Path,
        default=DEFAULT_DB_PATH,
        help=f"SQLite database path (default: {DEFAULT_DB_PATH})"
    )
    args = parser.parse_args()

    init_order_store_db(args.db)
    count = seed_sample_orders(args.db)
    print(f"Seeded {count} orders into {args.db}")

    repo = SQLiteOrderRepository(args.db, initialize=False)
    print("Unsynced orders:", ", ".join(repo.list_unsynced_order_ids()) or "-")
    return 0


if __name__ == "__main__":
    sys.exit(main())
