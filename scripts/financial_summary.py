#!/usr/bin/env python3
"""
Financial Summary Script

Prints the per-bucket totals and the per-location summary of the financial
report for a period.

Usage:
    python financial_summary.py --period month --actor <USER_ID>
    python financial_summary.py --period custom-date --date 2024-05-02 --actor <USER_ID>
"""

from __future__ import annotations

import argparse
import sys
from datetime import date
from pathlib import Path
from uuid import UUID

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories.record_store import SupabaseRecordStore
from repositories.user_repository import get_user_by_id
from services.errors import PermissionDeniedError
from services.financial_report_service import FinancialReport, ReportBucket, ReportPeriod, financial_report


def print_report(report: FinancialReport) -> None:
    start = report.date_range.start or "beginning"
    end = report.date_range.end or "now"

    print("=" * 60)
    print(f"FINANCIAL SUMMARY ({report.period.value}: {start} .. {end})")
    print("=" * 60)
    for bucket in ReportBucket:
        print(f"  {bucket.value:<15} {report.totals[bucket]:>15.2f}")
    print("-" * 60)
    print(f"  {'Cash received':<15} {report.cash_received:>15.2f}")
    print(f"  {'Grand total':<15} {report.grand_total:>15.2f}")

    print()
    print("BY LOCATION")
    print("-" * 60)
    if not report.summary:
        print("  No money received in this period")
    for row in report.summary:
        label = f"{row.batch_name} ({row.location})" if row.location else row.batch_name
        print(f"  {label:<40} {row.total:>15.2f}")
    print("=" * 60)


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Print the grouped financial report for a period",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # This month
  python financial_summary.py --period month --actor <USER_ID>

  # A single day
  python financial_summary.py --period custom-date --date 2024-05-02 --actor <USER_ID>
        """
    )

    parser.add_argument(
        "--period",
        "-p",
        choices=[p.value for p in ReportPeriod],
        default=ReportPeriod.MONTH.value,
        help="Reporting period (default: month)"
    )
    parser.add_argument(
        "--date",
        "-d",
        type=date.fromisoformat,
        help="Day for the custom-date period (YYYY-MM-DD)"
    )
    parser.add_argument(
        "--actor",
        "-a",
        type=UUID,
        required=True,
        help="ID of the back-office user viewing the report"
    )

    args = parser.parse_args()

    try:
        store = SupabaseRecordStore()
        actor = get_user_by_id(store, args.actor)
        report = financial_report(store, actor, ReportPeriod(args.period), custom_date=args.date)
        print_report(report)
        return 0

    except PermissionDeniedError as e:
        print(f"\nDENIED: {e.message}", file=sys.stderr)
        return 1

    except ValueError as e:
        parser.error(str(e))
        return 2

    except KeyboardInterrupt:
        print("\n\nReport interrupted by user")
        return 130

    except RuntimeError as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
