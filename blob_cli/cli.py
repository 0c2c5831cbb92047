"""
blob-cli — upload and download files with Vercel Blob storage.

Usage:
    blob-cli upload -f <path...> [-p PATHNAME] [--multipart] [--urls-only]
    blob-cli download [-p PREFIX] [-o DIR]

    Upload paths can be files or directories. Directories are walked
    recursively and every file keeps its path relative to the directory
    as its key. Downloads mirror object keys under the output directory.

The bearer token is read from BLOB_READ_WRITE_TOKEN (a .env file in the
working directory is honoured).
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from . import __version__
from .config import Config
from .exceptions import ArgumentError, BlobCliError
from .files import discover_files
from .output import OutputFormatter
from .store import BlobStore
from .transfer import DownloadOrchestrator, UploadOrchestrator, plan_uploads

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
HTTP_LOGGER = "azure.core.pipeline.policies.http_logging_policy"


def _build_logger(verbose: bool, log_path: Optional[str]) -> logging.Logger:
    logger = logging.getLogger("blob_cli")
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    # stdout carries results only
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console)

    file_handlers = []
    if log_path:
        log_file = Path(log_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(fh)
        file_handlers.append(fh)

    http_logger = logging.getLogger(HTTP_LOGGER)
    http_logger.handlers.clear()
    # request logging reaches the console only with -v
    http_handlers = ([console] if verbose else []) + file_handlers
    if http_handlers:
        http_logger.setLevel(logging.DEBUG)
        http_logger.propagate = False
        for handler in http_handlers:
            http_logger.addHandler(handler)
    return logger


# ---------------------------------------------------------------------------
# Arguments
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blob-cli",
        description="CLI for managing Vercel Blob Storage.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  # Upload a single file under a custom pathname\n"
            "  blob-cli upload -f report.csv -p reports/2024/q1.csv\n\n"
            "  # Upload a directory tree, printing only the resulting URLs\n"
            "  blob-cli upload -f ./public --urls-only\n\n"
            "  # Download everything under a prefix\n"
            "  blob-cli download -p reports/ -o ./backup\n"
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug output, including HTTP requests."
    )
    sub = parser.add_subparsers(dest="command", metavar="{upload,download}")
    sub.required = True

    upload = sub.add_parser("upload", help="Upload files to Vercel Blob Storage")
    upload.add_argument(
        "-f", "--file",
        nargs="+",
        metavar="PATH",
        help="File paths or directories to upload. Directories are walked recursively.",
    )
    upload.add_argument(
        "-p", "--pathname",
        help="Pathname to use for the upload (single file only).",
    )
    upload.add_argument(
        "--multipart", action="store_true", help="Enable multipart upload for large files"
    )
    upload.add_argument(
        "--urls-only",
        action="store_true",
        help="Show only the resulting URLs (useful for pipelines)",
    )
    upload.add_argument(
        "--dry-run",
        action="store_true",
        help="List the files and keys that would be uploaded, without uploading.",
    )
    upload.add_argument(
        "--concurrency", type=int, metavar="N", help="Number of parallel uploads."
    )

    download = sub.add_parser("download", help="Download files from Vercel Blob Storage")
    download.add_argument("-p", "--prefix", help="Prefix to filter files (optional)")
    download.add_argument(
        "-o", "--output",
        default=".",
        metavar="DIR",
        help="Output directory (defaults to current directory)",
    )
    download.add_argument(
        "--concurrency", type=int, metavar="N", help="Number of parallel downloads."
    )
    return parser


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _upload(args: argparse.Namespace, cfg: Config, logger: logging.Logger) -> int:
    if not args.file:
        raise ArgumentError(
            "Please specify one or more files or a directory using the -f option"
        )
    if not args.dry_run:
        cfg.require_token()

    discovery = discover_files(args.file)
    requests = plan_uploads(discovery, pathname=args.pathname, multipart=args.multipart)

    total_files = len(requests)
    logger.info(
        f"Files     : {total_files:,}"
        + (f"  ({len(discovery.missing)} path(s) not found)" if discovery.missing else "")
    )

    if args.dry_run:
        logger.info("[DRY RUN] Files that would be uploaded:")
        width = len(str(total_files))
        for i, req in enumerate(requests, 1):
            logger.info(f"  [{i:>{width}}] {req.local_path}  →  {req.remote_key}  ({req.content_type})")
        logger.info("[DRY RUN] No files were uploaded.")
        return 0

    if not requests:
        logger.warning("Nothing to upload.")
        return 0

    formatter = OutputFormatter(urls_only=args.urls_only)
    with BlobStore(cfg) as store:
        report = UploadOrchestrator(cfg, store).run(requests, on_result=formatter.upload)

    logger.info(f"Summary: {len(report.succeeded)}/{total_files} files uploaded successfully")
    if report.failed:
        logger.warning(f"{len(report.failed)} file(s) failed:")
        for result in report.failed:
            logger.warning(f"  - {result.remote_key}  ({result.error.message})")
    return 0


def _download(args: argparse.Namespace, cfg: Config, logger: logging.Logger) -> int:
    cfg.require_token()
    formatter = OutputFormatter()

    with BlobStore(cfg) as store:
        report = DownloadOrchestrator(cfg, store).run(
            args.output, prefix=args.prefix, on_result=formatter.download
        )

    if not report.results:
        formatter.message("No files found in blob storage")
        return 0

    logger.info(
        f"Summary: {len(report.succeeded)}/{len(report.results)} files downloaded"
    )
    formatter.message("Download complete!")
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def run(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        cfg = Config.from_env()
    except BlobCliError as exc:
        print(f"ERROR: {exc.message}", file=sys.stderr)
        return 1

    logger = _build_logger(args.verbose, cfg.log_path)
    if args.concurrency is not None:
        if args.concurrency < 1:
            logger.error("--concurrency must be at least 1.")
            return 1
        cfg.concurrency = args.concurrency

    logger.info(f"blob-cli {__version__}  |  {args.command}  |  Threads: {cfg.concurrency}")
    logger.debug(f"API: {cfg.api_url}")

    try:
        if args.command == "upload":
            return _upload(args, cfg, logger)
        return _download(args, cfg, logger)
    except BlobCliError as exc:
        logger.error(exc.message)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted.")
        return 130


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
