#!/usr/bin/env python3
"""
Sale Reset Script

Reverts a confirmed sale to its reserved state: every ledger entry except the
reservation deposit (and refunds) is deleted, the installment schedule is
deleted, and the down payment, company fee and schedule fields are cleared.

Usage:
    python reset_sale.py 123e4567-e89b-12d3-a456-426614174003 --actor 123e4567-e89b-12d3-a456-426614174009
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from uuid import UUID

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories.record_store import SupabaseRecordStore
from repositories.user_repository import get_user_by_id
from services.reversal_service import reset_to_reservation


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Reset a confirmed sale back to its reservation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Reset a sale, acting as a given back-office user
  python reset_sale.py <SALE_ID> --actor <USER_ID>
        """
    )

    parser.add_argument("sale_id", type=UUID, help="Sale to reset")
    parser.add_argument(
        "--actor",
        "-a",
        type=UUID,
        required=True,
        help="ID of the back-office user performing the reset"
    )

    args = parser.parse_args()

    try:
        store = SupabaseRecordStore()
        actor = get_user_by_id(store, args.actor)
        if actor is None:
            print(f"Unknown user: {args.actor}", file=sys.stderr)
            return 1

        print(f"Resetting sale {args.sale_id} as {actor.name}...")
        result = reset_to_reservation(store, actor, args.sale_id)

        print()
        print("=" * 60)
        if result.success:
            print("[SUCCESS] Sale reset to reservation")
        else:
            print(f"[REJECTED] {result.error_code}")
            for error in result.errors:
                print(f"  - {error}")
        print("=" * 60)

        return 0 if result.success else 1

    except KeyboardInterrupt:
        print("\n\nReset interrupted by user")
        return 130

    except RuntimeError as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        print("The sale may be partially reset; run the reset again once the store is reachable.", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
