from __future__ import annotations

import argparse
import asyncio
import json
import sys

from jobdiscovery.core.errors import SourceFatal
from jobdiscovery.core.models import CandidateQuery, DiscoveryRequest, DiscoveryResponse, utc_now
from jobdiscovery.core.orchestrator import DiscoveryOrchestrator
from jobdiscovery.storage.repository import JobRepository
from jobdiscovery.utils.config import ConfigError, DiscoverySettings, load_config
from jobdiscovery.utils.logging_utils import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rank job postings for a candidate across internal, cached and live sources")
    parser.add_argument("--config", default="config.yaml")
    commands = parser.add_subparsers(dest="command", required=True)

    discover = commands.add_parser("discover", help="Run one discovery request and print the response as JSON")
    discover.add_argument("--request", help="JSON file holding a camelCase request body")
    discover.add_argument("--skills", help="Comma separated skill list")
    discover.add_argument("--title")
    discover.add_argument("--location")
    discover.add_argument("--work-type", choices=["remote", "hybrid", "onsite"])
    discover.add_argument("--min-salary", type=int)
    discover.add_argument("--max-external", type=int, dest="max_external_jobs")
    discover.add_argument("--min-score", type=int, dest="min_match_score", help="Minimum match score, 0-100")
    discover.add_argument("--candidate-id", default="anonymous")

    commands.add_parser("expire-stale", help="Close cached external postings past their expiry")
    return parser


def request_from_args(args: argparse.Namespace) -> DiscoveryRequest:
    if args.request:
        with open(args.request, "r", encoding="utf-8") as handle:
            payload = json.load(handle)
        if not isinstance(payload, dict):
            raise ValueError("request body must be a JSON object")
        return DiscoveryRequest.from_dict(payload)
    if not args.skills:
        raise ValueError("either --skills or --request is required")
    query = CandidateQuery(
        skills=[s.strip() for s in args.skills.split(",") if s.strip()],
        title=args.title,
        location=args.location,
        work_type=args.work_type,
        min_salary=args.min_salary,
        candidate_id=args.candidate_id,
    )
    return DiscoveryRequest(query=query, max_external_jobs=args.max_external_jobs, min_match_score=args.min_match_score)


async def run_discovery(settings: DiscoverySettings, request: DiscoveryRequest) -> DiscoveryResponse:
    orchestrator = DiscoveryOrchestrator(settings)
    try:
        return await orchestrator.discover(request)
    finally:
        # let the cache-on-read batch land before the process exits
        await orchestrator.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = DiscoverySettings.from_config(load_config(args.config))
    except ConfigError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return 2
    setup_logging(settings.log_dir, settings.log_level)

    if args.command == "expire-stale":
        repository = JobRepository(settings.db_path)
        closed = repository.expire_stale_postings(utc_now())
        repository.close()
        print("Expired postings:", closed)
        return 0

    try:
        request = request_from_args(args)
    except (OSError, ValueError) as exc:
        print(f"Bad request: {exc}", file=sys.stderr)
        return 2
    try:
        response = asyncio.run(run_discovery(settings, request))
    except SourceFatal as exc:
        print(f"Discovery failed: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(response.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
