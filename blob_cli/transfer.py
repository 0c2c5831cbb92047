"""Upload and download orchestration.

Every file is an independent transition from request to result. Failures are
captured as ``TransferError`` on the result and never abort the batch.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterable, Optional, Sequence, TypeVar

from azure.core.exceptions import AzureError, HttpResponseError

from .config import Config
from .exceptions import ListingError, TransferError
from .files import (
    Discovery,
    FileSystem,
    LocalFileSystem,
    guess_content_type,
    make_key,
)
from .store import BlobStore, RemoteObject

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UploadRequest:
    local_path: str
    remote_key: str
    content_type: str
    multipart: bool = False


@dataclass(frozen=True)
class UploadResult:
    local_path: str
    remote_key: str
    public_url: Optional[str] = None
    download_url: Optional[str] = None
    error: Optional[TransferError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class DownloadTask:
    remote_object: RemoteObject
    destination_path: Optional[str]


@dataclass(frozen=True)
class DownloadResult:
    task: DownloadTask
    bytes_written: int = 0
    error: Optional[TransferError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchReport(Generic[R]):
    results: list[R] = field(default_factory=list)

    @property
    def succeeded(self) -> list[R]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list[R]:
        return [r for r in self.results if not r.ok]


def _run_ordered(
    items: Sequence[T],
    work: Callable[[T], R],
    concurrency: int,
    on_result: Optional[Callable[[R], None]] = None,
) -> list[R]:
    """Apply ``work`` to each item, returning results in input order.

    ``work`` must not raise. With ``concurrency > 1`` a bounded thread pool
    is used; ``on_result`` is still invoked in input order.
    """
    results: list[R] = []
    if concurrency <= 1 or len(items) <= 1:
        for item in items:
            result = work(item)
            results.append(result)
            if on_result:
                on_result(result)
        return results

    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        futures = [pool.submit(work, item) for item in items]
        for future in futures:
            result = future.result()
            results.append(result)
            if on_result:
                on_result(result)
    return results


def _describe(exc: Exception) -> tuple[str, Optional[int]]:
    if isinstance(exc, HttpResponseError):
        return exc.message or str(exc), exc.status_code
    return str(exc) or exc.__class__.__name__, None


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

def plan_uploads(
    discovery: Discovery,
    pathname: Optional[str] = None,
    multipart: bool = False,
) -> list[UploadRequest]:
    """Turn discovered files into upload requests with their remote keys."""
    single_file = len(discovery.files) == 1 and discovery.files[0].root is None
    if pathname and not single_file:
        if discovery.from_directory:
            logger.warning(
                f"--pathname '{pathname}' is ignored for directory uploads; "
                "keys are taken from paths relative to the directory."
            )
        elif discovery.files:
            logger.warning(
                f"--pathname '{pathname}' is ignored when uploading several files; "
                "each file keeps its own name."
            )

    return [
        UploadRequest(
            local_path=f.path,
            remote_key=make_key(f, override=pathname, single_file=single_file),
            content_type=guess_content_type(f.path),
            multipart=multipart,
        )
        for f in discovery.files
    ]


class UploadOrchestrator:
    def __init__(
        self,
        cfg: Config,
        store: BlobStore,
        fs: Optional[FileSystem] = None,
    ) -> None:
        self.cfg = cfg
        self.store = store
        self.fs = fs or LocalFileSystem()

    def upload_one(self, request: UploadRequest) -> UploadResult:
        try:
            data = self.fs.read_bytes(request.local_path)
            put = self.store.put(
                request.remote_key,
                data,
                content_type=request.content_type,
                multipart=request.multipart,
            )
        except (OSError, AzureError, ValueError, KeyError, TypeError) as exc:
            message, status = _describe(exc)
            error = TransferError(request.remote_key, message, status_code=status)
            logger.debug(f"Upload of {request.local_path} failed", exc_info=True)
            return UploadResult(request.local_path, request.remote_key, error=error)

        logger.debug(
            f"Uploaded {request.local_path} → {request.remote_key} "
            f"({len(data):,} bytes, {request.content_type})"
        )
        return UploadResult(
            local_path=request.local_path,
            remote_key=request.remote_key,
            public_url=put.url,
            download_url=put.download_url,
        )

    def run(
        self,
        requests: Sequence[UploadRequest],
        on_result: Optional[Callable[[UploadResult], None]] = None,
    ) -> BatchReport[UploadResult]:
        results = _run_ordered(
            requests, self.upload_one, self.cfg.concurrency, on_result
        )
        return BatchReport(results)



# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------

def destination_for(fs: FileSystem, output_dir: str, key: str) -> Optional[str]:
    """Mirror a remote key under ``output_dir``.

    Returns None for keys that would land outside ``output_dir``. Folder
    markers (keys ending in ``/``) map to the directory itself.
    """
    segments = [s for s in key.split("/") if s not in ("", ".")]
    if key.startswith("/") or ".." in segments or not segments:
        return None
    return fs.join(output_dir, *segments)


class DownloadOrchestrator:
    def __init__(
        self,
        cfg: Config,
        store: BlobStore,
        fs: Optional[FileSystem] = None,
    ) -> None:
        self.cfg = cfg
        self.store = store
        self.fs = fs or LocalFileSystem()

    def list_remote(self, prefix: Optional[str] = None) -> list[RemoteObject]:
        try:
            return self.store.list_objects(prefix=prefix)
        except (AzureError, ValueError, KeyError, TypeError) as exc:
            message, status = _describe(exc)
            details = {"prefix": prefix or ""}
            if status is not None:
                details["status_code"] = str(status)
            raise ListingError(f"Error listing files: {message}", details) from exc

    def plan(self, objects: Iterable[RemoteObject], output_dir: str) -> list[DownloadTask]:
        return [
            DownloadTask(obj, destination_for(self.fs, output_dir, obj.key))
            for obj in objects
        ]

    def download_one(self, task: DownloadTask) -> DownloadResult:
        key = task.remote_object.key
        if task.destination_path is None:
            return DownloadResult(
                task, error=TransferError(key, f"Refusing unsafe object key: {key!r}")
            )
        if key.endswith("/"):
            # folder marker: recreate the directory, there is nothing to fetch
            try:
                self.fs.make_dirs(task.destination_path)
            except OSError as exc:
                return DownloadResult(task, error=TransferError(key, str(exc)))
            return DownloadResult(task)
        try:
            data = self.store.fetch(task.remote_object.url)
            self.fs.make_dirs(self.fs.dirname(task.destination_path))
            self.fs.write_bytes(task.destination_path, data)
        except (OSError, AzureError) as exc:
            message, status = _describe(exc)
            logger.debug(f"Download of {key} failed", exc_info=True)
            return DownloadResult(task, error=TransferError(key, message, status_code=status))
        return DownloadResult(task, bytes_written=len(data))

    def run(
        self,
        output_dir: str,
        prefix: Optional[str] = None,
        on_result: Optional[Callable[[DownloadResult], None]] = None,
    ) -> BatchReport[DownloadResult]:
        """List, then fetch every object under ``output_dir``.

        An empty listing returns an empty report without touching the disk.
        """
        objects = self.list_remote(prefix)
        if not objects:
            return BatchReport()

        output_dir = self.fs.resolve(output_dir)
        self.fs.make_dirs(output_dir)
        tasks = self.plan(objects, output_dir)
        return BatchReport(
            _run_ordered(tasks, self.download_one, self.cfg.concurrency, on_result)
        )
