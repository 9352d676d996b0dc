"""
Engine artifact downloader

Fetches a gzip-compressed engine, decompresses it into a temporary sibling
file and moves it into place only once it is complete.

License: Mozilla Public License 2.0
"""

import logging
import os
import tempfile
import time
import zlib
from pathlib import Path
from typing import Any, Optional, Union

import requests
from requests.exceptions import RequestException

from ..core.errors import DownloadError, ProtocolError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
EXECUTABLE_MODE = 0o755

# 16 + MAX_WBITS: expect a gzip header and trailer
GZIP_WBITS = 16 + zlib.MAX_WBITS


def download(url: str, to: Union[str, Path], session: Optional[Any] = None,
             timeout: Optional[float] = 300) -> Path:
    """
    Download a gzip-compressed executable to `to`.

    Args:
        url: Remote artifact URL
        to: Final destination path
        session: Object with a requests-compatible get() (default: the requests module)
        timeout: Connect/read timeout in seconds

    Returns:
        The destination path

    Raises:
        DownloadError: On connection failure or non-200 status
        ProtocolError: If the body is not a single valid gzip member
    """
    to = Path(to)
    try:
        to.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DownloadError(f"could not create directory {to.parent}: {e}", url=url) from e

    http = session if session is not None else requests
    start = time.monotonic()

    try:
        response = http.get(url, stream=True, timeout=timeout)
    except RequestException as e:
        raise DownloadError(f"could not get {url}: {e}", url=url) from e

    try:
        if response.status_code != 200:
            raise DownloadError(
                f"received code {response.status_code} from {url}: {response.text}",
                url=url,
                status_code=response.status_code,
            )

        fd, tmp_name = tempfile.mkstemp(prefix=f".{to.name}.", suffix=".tmp", dir=str(to.parent))
        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as out:
                _decompress(response.iter_content(chunk_size=CHUNK_SIZE), out, url)
            os.chmod(tmp, EXECUTABLE_MODE)
            os.replace(tmp, to)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
    finally:
        response.close()

    logger.debug(f"download of {url} took {time.monotonic() - start:.3f}s")
    return to


def _decompress(chunks, out, url: str) -> None:
    """Write the first gzip member found in `chunks` to `out`."""
    decompressor = zlib.decompressobj(GZIP_WBITS)

    try:
        for chunk in chunks:
            if not chunk:
                continue
            out.write(decompressor.decompress(chunk))
            if decompressor.eof:
                break
        out.write(decompressor.flush())
    except RequestException as e:
        raise DownloadError(f"could not copy {url}: {e}", url=url) from e
    except zlib.error as e:
        raise ProtocolError(f"could not decompress {url}: {e}") from e

    if not decompressor.eof:
        raise ProtocolError(f"could not decompress {url}: missing or truncated gzip stream")

    if decompressor.unused_data:
        logger.warning(f"ignoring {len(decompressor.unused_data)} trailing bytes after gzip member from {url}")
