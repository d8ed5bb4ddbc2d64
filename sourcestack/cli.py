"""
CLI Entry Point: SourceStack resume harvester

Usage:
    sourcestack parse-file resume.pdf
    sourcestack batch --folder-id 1AbC... [--spreadsheet-id 1XyZ...]
    sourcestack jobs

Exit codes:
    0  success
    1  usage or request error
    2  file not found (parse-file)
    3  unsupported file type (parse-file)
    4  batch job did not complete
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from sourcestack.common.config import SourceStackSettings, get_settings
from sourcestack.common.error_handling import SourceStackError
from sourcestack.common.logger import setup_logging
from sourcestack.common.types import BatchRequest, Candidate, JobState
from sourcestack.parsing.text_pipeline import is_supported
from sourcestack.services.factory import (
    build_document_parser,
    build_job_store,
    build_resume_parser_service,
)
from version import __version__

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_NOT_FOUND = 2
EXIT_UNSUPPORTED = 3
EXIT_JOB_NOT_COMPLETED = 4


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports usage errors with exit code 1."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="sourcestack",
        description="Extract candidate contact fields from PDF/DOCX resumes",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", parser_class=_ArgumentParser)
    subparsers.required = True

    parse_file = subparsers.add_parser("parse-file", help="Parse a single local resume")
    parse_file.add_argument("path", help="Path to a .pdf or .docx file")

    batch = subparsers.add_parser("batch", help="Harvest every resume in a Google Drive folder")
    batch.add_argument("--folder-id", required=True, help="Google Drive folder ID")
    batch.add_argument(
        "--spreadsheet-id",
        default=None,
        help="Existing spreadsheet to append to (a new one is created by default)"
    )
    batch.add_argument(
        "--poll-interval",
        type=float,
        default=2.0,
        help="Seconds between status checks (default: 2)"
    )

    subparsers.add_parser("jobs", help="List known job IDs (expired jobs are removed first)")
    return parser


def run_parse_file(path_arg: str, settings: SourceStackSettings) -> int:
    path = Path(path_arg)
    if not path.is_file():
        print(f"File not found: {path}", file=sys.stderr)
        return EXIT_NOT_FOUND
    if not is_supported(path.name):
        print(f"Unsupported file type: {path.name} (expected .pdf or .docx)", file=sys.stderr)
        return EXIT_UNSUPPORTED

    parser = build_document_parser(settings)
    result = asyncio.run(parser.parse(path.name, path.read_bytes()))

    candidate = Candidate.from_extraction(result, source_file=path.name)
    print(candidate.model_dump_json(indent=2))
    return EXIT_OK


async def _run_batch(
    settings: SourceStackSettings,
    request: BatchRequest,
    poll_interval: float,
) -> int:
    async with build_resume_parser_service(settings) as service:
        job_id = await service.start_batch_job(request)
        print(f"Started job {job_id}")

        last_line = None
        while True:
            status = await service.get_job_status(job_id)
            line = (
                f"[{status.status.value}] {status.progress}% "
                f"({status.processed_files}/{status.total_files} files)"
            )
            if line != last_line:
                print(line)
                last_line = line
            if status.status.is_terminal:
                break
            await asyncio.sleep(poll_interval)

    print(status.model_dump_json(indent=2))
    return EXIT_OK if status.status == JobState.COMPLETED else EXIT_JOB_NOT_COMPLETED


def run_batch(args: argparse.Namespace, settings: SourceStackSettings) -> int:
    request = BatchRequest(folder_id=args.folder_id, spreadsheet_id=args.spreadsheet_id)
    try:
        return asyncio.run(_run_batch(settings, request, max(0.1, args.poll_interval)))
    except SourceStackError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_USAGE


def run_jobs(settings: SourceStackSettings) -> int:
    store = build_job_store(settings)
    for job_id in asyncio.run(store.list_jobs()):
        print(job_id)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    if args.command == "parse-file":
        # Keep stdout clean for the JSON result
        setup_logging("ERROR", settings.log_format)
        return run_parse_file(args.path, settings)

    setup_logging(settings.log_level, settings.log_format)
    if args.command == "batch":
        return run_batch(args, settings)
    return run_jobs(settings)


if __name__ == "__main__":
    sys.exit(main())
