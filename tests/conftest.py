"""
Pytest configuration for blob-cli tests
"""

import logging
import posixpath
from typing import Optional

import pytest
from azure.core.exceptions import HttpResponseError, ServiceRequestError

from blob_cli.config import Config
from blob_cli.store import PutResult, RemoteObject

BASE_URL = "https://store.test"


class MemoryFileSystem:
    """In-memory FileSystem with posix paths rooted at /work."""

    def __init__(self, files: Optional[dict] = None, cwd: str = "/work") -> None:
        self.cwd = cwd
        self.files: dict = {}
        self.dirs: set = {"/"}
        self.writes: list = []
        for path, data in (files or {}).items():
            self._add(self.resolve(path), data)

    def _add(self, path: str, data: bytes) -> None:
        self.files[path] = data
        parent = posixpath.dirname(path)
        while parent not in self.dirs:
            self.dirs.add(parent)
            parent = posixpath.dirname(parent)

    def mkdir(self, path: str) -> None:
        self.make_dirs(self.resolve(path))

    def resolve(self, path: str) -> str:
        return posixpath.normpath(posixpath.join(self.cwd, path))

    def exists(self, path: str) -> bool:
        return path in self.files or path in self.dirs

    def is_dir(self, path: str) -> bool:
        return path in self.dirs

    def is_file(self, path: str) -> bool:
        return path in self.files

    def list_dir(self, path: str) -> list:
        children = set()
        for entry in list(self.files) + list(self.dirs):
            if entry != path and posixpath.dirname(entry) == path:
                children.add(posixpath.basename(entry))
        # unsorted on purpose, the walk must sort
        return sorted(children, reverse=True)

    def join(self, base: str, *parts: str) -> str:
        return posixpath.join(base, *parts)

    def dirname(self, path: str) -> str:
        return posixpath.dirname(path)

    def read_bytes(self, path: str) -> bytes:
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    def write_bytes(self, path: str, data: bytes) -> None:
        if posixpath.dirname(path) not in self.dirs:
            raise FileNotFoundError(posixpath.dirname(path))
        self.writes.append(path)
        self.files[path] = data

    def make_dirs(self, path: str) -> None:
        while path not in self.dirs:
            self.dirs.add(path)
            path = posixpath.dirname(path)


class FakeStore:
    """Stand-in for BlobStore keeping objects in a dict."""

    def __init__(self, objects: Optional[dict] = None) -> None:
        self.objects: dict = dict(objects or {})
        self.puts: list = []
        self.fetches: list = []
        self.list_calls: list = []
        self.fail_put: dict = {}
        self.fail_fetch: dict = {}
        self.list_error: Optional[Exception] = None
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True

    def close(self):
        self.closed = True

    @staticmethod
    def url_for(key: str) -> str:
        return f"{BASE_URL}/{key}"

    def put(self, key, data, content_type, multipart=False):
        self.puts.append(
            {"key": key, "data": data, "content_type": content_type, "multipart": multipart}
        )
        if key in self.fail_put:
            raise self.fail_put[key]
        self.objects[key] = data
        url = self.url_for(key)
        return PutResult(url=url, download_url=f"{url}?download=1", pathname=key)

    def list_objects(self, prefix=None):
        self.list_calls.append(prefix)
        if self.list_error is not None:
            raise self.list_error
        return [
            RemoteObject(key=key, url=self.url_for(key), size=len(data))
            for key, data in sorted(self.objects.items())
            if not prefix or key.startswith(prefix)
        ]

    def fetch(self, url):
        self.fetches.append(url)
        key = url[len(BASE_URL) + 1:]
        if key in self.fail_fetch:
            raise self.fail_fetch[key]
        if key not in self.objects:
            error = HttpResponseError(message="Not Found")
            error.status_code = 404
            raise error
        return self.objects[key]


def http_error(status_code: int, message: str = "request failed") -> HttpResponseError:
    error = HttpResponseError(message=message)
    error.status_code = status_code
    return error


def network_error(message: str = "Connection reset by peer") -> ServiceRequestError:
    return ServiceRequestError(message)


@pytest.fixture
def cfg():
    return Config({"BLOB_READ_WRITE_TOKEN": "vercel_blob_rw_test_token"})


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def memfs():
    return MemoryFileSystem()


@pytest.fixture(autouse=True)
def reset_cli_logging():
    yield
    for name in ("blob_cli", "azure.core.pipeline.policies.http_logging_policy"):
        logging.getLogger(name).handlers.clear()
