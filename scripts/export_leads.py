#!/usr/bin/env python3
"""
Lead Export Script

Exports leads from the Supabase database to CSV (the same columns as the
portal's download) or writes a JSON report for the same filters.

Usage:
    python export_leads.py --output leads.csv
    python export_leads.py --status Converted --date-range month --output converted.csv
    python export_leads.py --service debt-review --report --output report.json
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.lead import LeadStatus
from repositories.client import get_supabase
from repositories.lead_repository import LeadRepository
from services.agent_service import agent_names, load_agents
from services.csv_export_service import export_filename, generate_leads_csv, generate_report_json
from services.reporting_service import DateRange, LeadFilters, build_report, filter_leads


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Export leads from Supabase database to CSV or a JSON report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export all leads
  python export_leads.py --output all_leads.csv

  # Export this week's leads for one agent
  python export_leads.py --agent 6f1c... --date-range week

  # Write the conversion/revenue report for converted debt-review leads
  python export_leads.py --service debt-review --report
        """
    )
    parser.add_argument(
        "--output",
        "-o",
        help="Output path (default: leads-export-<date>.csv or report-<date>.json)"
    )
    parser.add_argument(
        "--status",
        choices=[status.value for status in LeadStatus],
        help="Filter by lead status"
    )
    parser.add_argument("--service", help="Filter by service id (e.g. debt-review)")
    parser.add_argument("--agent", help="Filter by capturing or assigned agent id")
    parser.add_argument(
        "--date-range",
        choices=[value.value for value in DateRange],
        default=DateRange.ALL.value,
        help="Only leads created within this range"
    )
    parser.add_argument("--search", default="", help="Name, ID number, cell number or lead number")
    parser.add_argument("--report", action="store_true", help="Write a JSON report instead of CSV")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)

    filters = LeadFilters(
        date_range=DateRange(args.date_range),
        agent=args.agent or "all",
        service=args.service or "all",
        status=args.status or "all",
        search=args.search,
    )

    try:
        print("Fetching leads from database...")
        for key, value in filters.describe().items():
            print(f"  {key}: {value}")
        print()

        repo = LeadRepository(get_supabase())
        repo.refresh()
        if repo.error:
            print(f"\nERROR: {repo.error}", file=sys.stderr)
            return 1

        agents = load_agents(repo.client)
        if args.report:
            output = args.output or export_filename("report", "json")
            content = generate_report_json(build_report(repo.leads, agents, filters, repo.now()))
            exported = len(filter_leads(repo.leads, filters, repo.now()))
        else:
            leads = filter_leads(repo.leads, filters, repo.now())
            if not leads:
                print("No leads found matching the specified filters")
                return 1
            output = args.output or export_filename("leads-export", "csv")
            content = generate_leads_csv(leads, agent_names(agents))
            exported = len(leads)

        with open(output, "w", newline="", encoding="utf-8") as f:
            f.write(content)

        print("=" * 60)
        print("EXPORT SUMMARY")
        print("=" * 60)
        print(f"Leads included: {exported}")
        print(f"Output file: {output}")
        print("=" * 60)
        return 0

    except KeyboardInterrupt:
        print("\n\nExport interrupted by user")
        return 130

    except Exception as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
