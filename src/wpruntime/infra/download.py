"""HTTP downloads for portable installs."""

import logging
from pathlib import Path

import httpx

from wpruntime.logging_schema import LogEvent

logger = logging.getLogger(__name__)


async def download_file(
    url: str,
    target: Path,
    *,
    timeout: float = 300.0,
    client: httpx.AsyncClient | None = None,
) -> Path:
    """Stream url into target, creating parent directories.

    A partially written file is removed on failure.

    Raises:
        httpx.HTTPStatusError: Non-2xx response.
        httpx.TransportError: Connection or read failure.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
    try:
        async with http.stream("GET", url) as response:
            response.raise_for_status()
            with target.open("wb") as fh:
                async for chunk in response.aiter_bytes():
                    fh.write(chunk)
    except Exception:
        target.unlink(missing_ok=True)
        raise
    finally:
        if owns_client:
            await http.aclose()

    logger.info(
        "Downloaded %s",
        url,
        extra={"event": LogEvent.DOWNLOAD_COMPLETED, "url": url, "path": str(target)},
    )
    return target
