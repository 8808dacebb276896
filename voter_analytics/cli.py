"""
Command-line entry point.

Examples:
    voter-analytics score --param county_name=FULTON --param gender=F
    voter-analytics map-stats --param bbox=-84.5,33.6,-84.3,33.8
    voter-analytics voters --param residence_city=ATLANTA --page 2
    voter-analytics voter 12345678 --household
    voter-analytics lookup --category district
    voter-analytics summary --param county_name=FULTON --section demographics
    voter-analytics turnout --area-type County --area-value FULTON \\
        --election-date 2020-11-03 --report AgeRange --chart AgeRange
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Optional, Sequence

from rich.console import Console
from rich.table import Table

from .analytics import (
    AggregationEngine,
    FieldLookupService,
    TurnoutAnalysisService,
    VoterQueryService,
    VoterSummaryService,
)
from .analytics.summary import SECTION_NAMES
from .config import get_config
from .exceptions import VoterAnalyticsError
from .logger import get_logger
from .persistence import PostgresVoterStore, QueryResultCache

console = Console()
err_console = Console(stderr=True)
logger = get_logger("voter_analytics.cli")


def parse_params(pairs: Optional[Sequence[str]]) -> dict[str, list[str]]:
    """Collect repeated ``key=value`` pairs into a multi-valued mapping."""
    params: dict[str, list[str]] = {}
    for pair in pairs or ():
        if "=" not in pair:
            raise argparse.ArgumentTypeError(f"Expected key=value, got {pair!r}")
        key, value = pair.split("=", 1)
        params.setdefault(key.strip(), []).append(value)
    return params


def build_engine() -> AggregationEngine:
    config = get_config()
    cache = None
    if config.cache.enabled:
        cache = QueryResultCache(config.cache.max_entries, config.cache.ttl_sec)
    return AggregationEngine(PostgresVoterStore(config.db), cache)


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def print_turnout(result: dict[str, Any]) -> None:
    summary = result["summary"]
    console.print(
        f"[bold]Total voters:[/bold] {summary['totalVoters']}  "
        f"[bold]Voted:[/bold] {summary['votedCount']}  "
        f"[bold]Turnout:[/bold] {summary['turnoutPct']}%"
    )
    geo_units = result.get("geoUnits")
    if geo_units and len(geo_units["rows"]) > 1:
        table = Table(title=f"Turnout by {geo_units['unitType']}")
        table.add_column(geo_units["unitType"])
        table.add_column("Total", justify="right")
        table.add_column("Voted", justify="right")
        table.add_column("Turnout %", justify="right")
        for row in geo_units["rows"]:
            pct = row["turnoutPct"]
            table.add_row(
                row["geoLabel"],
                str(row["totalVoters"]),
                str(row["votedCount"]),
                "-" if pct is None else f"{pct:.1f}",
            )
        console.print(table)
    for report in result.get("report", []):
        table = Table(title=f"Turnout by {report['breakdownDimension']}")
        table.add_column("Value")
        table.add_column("Total", justify="right")
        table.add_column("Voted", justify="right")
        table.add_column("Turnout %", justify="right")
        for row in report["rows"]:
            pct = row["turnoutPct"]
            table.add_row(
                row["dimensionValue"],
                str(row["totalVoters"]),
                str(row["votedCount"]),
                "-" if pct is None else f"{pct:.1f}",
            )
        console.print(table)
    console.print(f"[dim]{result['metadata']['notes']}[/dim]")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="voter-analytics",
        description="Georgia voter filter and turnout analytics",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def with_params(p: argparse.ArgumentParser) -> argparse.ArgumentParser:
        p.add_argument(
            "--param", "-p", action="append", metavar="KEY=VALUE",
            help="Filter parameter; repeat for multiple values",
        )
        return p

    with_params(sub.add_parser("score", help="Average participation score"))
    with_params(sub.add_parser("map-stats", help="Score and voter count inside a bbox"))

    voters = with_params(sub.add_parser("voters", help="Paged voter list"))
    voters.add_argument("--page", type=int, default=1)
    voters.add_argument("--page-size", type=int, default=50)

    voter = sub.add_parser("voter", help="Single voter profile")
    voter.add_argument("registration_number")
    voter.add_argument(
        "--household", action="store_true",
        help="List other voters at the same address instead",
    )

    lookup = sub.add_parser("lookup", help="Distinct values of lookup fields")
    lookup.add_argument("--field", action="append", dest="fields")
    lookup.add_argument("--category")

    summary = with_params(sub.add_parser("summary", help="Voter counts per summary field value"))
    summary.add_argument("--section", choices=list(SECTION_NAMES))

    turnout = sub.add_parser("turnout", help="Turnout analysis")
    turnout.add_argument("--area-type", required=True, choices=["County", "District", "ZipCode"])
    turnout.add_argument("--area-value", required=True)
    turnout.add_argument("--district-type", choices=["Congressional", "StateSenate", "StateHouse"])
    turnout.add_argument("--sub-area-type", choices=["Precinct", "Municipality", "ZipCode"])
    turnout.add_argument("--sub-area-value")
    turnout.add_argument("--election-date", required=True, help="YYYY-MM-DD")
    turnout.add_argument(
        "--report", action="append", default=[], choices=["Race", "Gender", "AgeRange"],
    )
    turnout.add_argument("--chart", choices=["Race", "Gender", "AgeRange"])
    turnout.add_argument("--census", action="store_true", help="Include census data")
    turnout.add_argument("--json", action="store_true", help="Print raw JSON")

    return parser


def turnout_body(args: argparse.Namespace) -> dict[str, Any]:
    geography = {"areaType": args.area_type, "areaValue": args.area_value}
    if args.district_type:
        geography["districtType"] = args.district_type
    if args.sub_area_type:
        geography["subAreaType"] = args.sub_area_type
    if args.sub_area_value:
        geography["subAreaValue"] = args.sub_area_value
    return {
        "geography": geography,
        "electionDate": args.election_date,
        "reportDataPoints": args.report,
        "chartDataPoint": args.chart,
        "includeCensusData": args.census,
    }


def run(args: argparse.Namespace, engine: AggregationEngine) -> None:
    if args.command in ("score", "map-stats", "voters"):
        params = parse_params(args.param)
        service = VoterQueryService(engine)
        if args.command == "score":
            print_json(service.participation_score(params).to_dict())
        elif args.command == "map-stats":
            print_json(service.map_stats(params).to_dict())
        else:
            print_json(service.list_voters(params, args.page, args.page_size).to_dict())

    elif args.command == "voter":
        service = VoterQueryService(engine)
        if args.household:
            others = service.other_voters_at_address(args.registration_number)
            print_json([v.to_dict() for v in others])
        else:
            print_json(service.get_voter(args.registration_number).to_dict())

    elif args.command == "lookup":
        print_json(FieldLookupService(engine).lookup(args.fields, args.category).to_dict())

    elif args.command == "summary":
        summary = VoterSummaryService(engine).summarize(parse_params(args.param), args.section)
        print_json(summary.to_dict())

    elif args.command == "turnout":
        result = TurnoutAnalysisService(engine).analyze(turnout_body(args)).to_dict()
        if args.json:
            print_json(result)
        else:
            print_turnout(result)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        parse_params(getattr(args, "param", None))
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    engine = None
    try:
        engine = build_engine()
        run(args, engine)
    except VoterAnalyticsError as e:
        logger.error(str(e))
        err_console.print_json(json.dumps(e.to_response()))
        return 1 if e.status_code < 500 else 2
    finally:
        if engine is not None:
            engine.store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
