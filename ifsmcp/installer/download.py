"""Streaming HTTP downloads for the source archive and the portable uv."""

import logging
from pathlib import Path

import httpx

from ..errors import AcquisitionFailed, ErrorKind

DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_RETRIES = 3
_CHUNK_SIZE = 64 * 1024

_logging = logging.getLogger(__name__)


async def download_file(
    url: str,
    dest: Path,
    *,
    source: str = "download",
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Path:
    """Stream ``url`` into ``dest``, following redirects.

    Raises:
        AcquisitionFailed: On a non-2xx response (REMOTE_ARTIFACT_MISSING for
            404), any transport error (NETWORK_FAILURE) or a local write error
    """
    _logging.debug(f"Downloading {url} -> {dest}")
    timeout = httpx.Timeout(timeout_seconds, connect=10.0)
    transport = transport or httpx.AsyncHTTPTransport(retries=DEFAULT_MAX_RETRIES)
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        async with httpx.AsyncClient(
            timeout=timeout, transport=transport, follow_redirects=True
        ) as client:
            async with client.stream("GET", url) as response:
                if response.status_code == 404:
                    raise AcquisitionFailed(
                        source, f"{url} not found (HTTP 404)", ErrorKind.REMOTE_ARTIFACT_MISSING
                    )
                if not response.is_success:
                    raise AcquisitionFailed(
                        source, f"HTTP {response.status_code} fetching {url}", ErrorKind.NETWORK_FAILURE
                    )
                with open(dest, "wb") as f:
                    async for chunk in response.aiter_bytes(_CHUNK_SIZE):
                        f.write(chunk)
    except httpx.HTTPError as e:
        _logging.warning(f"HTTP error fetching {url}: {e}")
        raise AcquisitionFailed(source, f"{type(e).__name__}: {e}", ErrorKind.NETWORK_FAILURE) from e
    except OSError as e:
        raise AcquisitionFailed(source, f"could not write {dest}: {e}") from e
    return dest


__all__ = ["download_file"]
