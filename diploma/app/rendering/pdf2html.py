"""
pdf2htmlEX rendering adapter.

Turns the trusted document into HTML and locates its pages.

RENDERING CONTRACT (ASSUMED, NOT REIMPLEMENTED):
- ``<body>`` has a child with ``id="page-container"``
- the page container holds one element per logical page, in order
- nested ``div`` elements are visual rows; text leaves carry the literal
  rendered text

pdf2htmlEX cannot stream, so the input and output go through temporary
files. They are removed afterwards unless keep_output is set.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional

from lxml import etree, html

from diploma.app.config import DiplomaConfig
from diploma.app.errors import PageContainerNotFoundError, RenderError

logger = logging.getLogger(__name__)

PAGE_CONTAINER_ID = "page-container"


class Pdf2HtmlRenderer:
    """Runs the external pdf2htmlEX binary."""

    def __init__(
        self,
        binary: str = "pdf2htmlEX",
        tmp_dir: Optional[Path] = None,
        keep_output: bool = False,
        timeout: int = 60,
        debug: bool = False,
    ) -> None:
        self._binary = binary
        self._tmp_dir = tmp_dir
        self._keep_output = keep_output
        self._timeout = timeout
        self._debug = debug

    @classmethod
    def from_config(cls, config: DiplomaConfig) -> "Pdf2HtmlRenderer":
        return cls(
            binary=config.PDF2HTMLEX_BINARY,
            tmp_dir=config.TMP_DIR,
            keep_output=config.KEEP_RENDER_OUTPUT,
            timeout=config.RENDER_TIMEOUT_SECONDS,
            debug=config.ENABLE_DEBUG,
        )

    def render(self, pdf_bytes: bytes) -> str:
        """
        Render PDF bytes to an HTML document.

        Raises:
            RenderError: the renderer could not be run, failed, or produced
                no output.
        """
        try:
            infile = self._temp_path("duo-verified-pdf-", ".pdf")
            outfile = self._temp_path("duo-verified-html-", ".html")
        except OSError as exc:
            raise RenderError("create temporary files", exc) from exc

        try:
            infile.write_bytes(pdf_bytes)

            command = [
                self._binary,
                "--process-nontext", "0",  # no images, much faster
                "--dest-dir", str(outfile.parent),
                str(infile),
                outfile.name,
            ]

            try:
                process = subprocess.run(
                    command,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    timeout=self._timeout,
                    check=False,
                )
            except (OSError, subprocess.SubprocessError) as exc:
                raise RenderError("run pdf2htmlEX", exc) from exc

            if self._debug:
                logger.debug(
                    "pdf2htmlEX stdout:\n%s\nstderr:\n%s",
                    process.stdout.decode("utf-8", errors="replace"),
                    process.stderr.decode("utf-8", errors="replace"),
                )

            if process.returncode != 0:
                raise RenderError(
                    f"run pdf2htmlEX: exit status {process.returncode}"
                )

            try:
                return outfile.read_text(encoding="utf-8")
            except OSError as exc:
                raise RenderError("read pdf2htmlEX output", exc) from exc

        finally:
            if not self._keep_output:
                for path in (infile, outfile):
                    try:
                        path.unlink()
                    except FileNotFoundError:
                        pass

    def _temp_path(self, prefix: str, suffix: str) -> Path:
        fd, name = tempfile.mkstemp(
            prefix=prefix,
            suffix=suffix,
            dir=str(self._tmp_dir) if self._tmp_dir is not None else None,
        )
        os.close(fd)
        return Path(name)


def find_pages(document: str) -> List[html.HtmlElement]:
    """
    Return the page elements of a rendered document, in order.

    Raises:
        PageContainerNotFoundError: the page container is missing.
    """
    try:
        root = html.document_fromstring(document)
    except (etree.LxmlError, ValueError) as exc:
        raise PageContainerNotFoundError("cannot parse HTML", exc) from exc

    body = root.find("body")
    container = None
    if body is not None:
        for child in body:
            if child.get("id") == PAGE_CONTAINER_ID:
                container = child
                break

    if container is None:
        raise PageContainerNotFoundError(
            "cannot parse HTML: cannot find page container"
        )

    return [page for page in container if isinstance(page.tag, str)]
