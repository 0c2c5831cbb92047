"""Result rendering.

Results go to stdout; failures always go to stderr so that ``--urls-only``
output can be piped into other tools untouched.
"""

from __future__ import annotations

import sys
from typing import Optional, TextIO

from .transfer import DownloadResult, UploadResult


class OutputFormatter:
    def __init__(
        self,
        urls_only: bool = False,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
    ) -> None:
        self.urls_only = urls_only
        self.out = out or sys.stdout
        self.err = err or sys.stderr

    def _print(self, *lines: str) -> None:
        for line in lines:
            print(line, file=self.out)
        self.out.flush()

    def upload(self, result: UploadResult) -> None:
        if not result.ok:
            print(
                f"Error uploading file {result.local_path}: {result.error.message}",
                file=self.err,
            )
            return
        if self.urls_only:
            self._print(result.public_url)
        else:
            self._print(
                f"File uploaded successfully: {result.local_path}",
                f"URL: {result.public_url}",
                f"Download URL: {result.download_url}",
            )

    def download(self, result: DownloadResult) -> None:
        key = result.task.remote_object.key
        if not result.ok:
            print(f"Failed to download: {key} ({result.error.message})", file=self.err)
            return
        self._print(f"Downloaded: {key}")

    def message(self, text: str) -> None:
        if not self.urls_only:
            self._print(text)
