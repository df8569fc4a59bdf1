import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

GPLINKS_API = "https://api.gplinks.com/api"


def is_shortenable(quality: str) -> bool:
    """Only 1080p links go through the shortener; 4K links stay direct."""
    label = quality.lower()
    return "1080p" in label and "4k" not in label


async def shorten(
    api_token: str, url: str, client: Optional[httpx.AsyncClient] = None
) -> str:
    """Shorten ``url`` with GPLinks. Any failure returns ``url`` unchanged."""
    if not api_token:
        return url

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=10.0)
    try:
        response = await client.get(GPLINKS_API, params={"api": api_token, "url": url})
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Failed to shorten %s: %s", url, e)
        return url
    finally:
        if owns_client:
            await client.aclose()

    if isinstance(data, dict) and data.get("status") == "success" and data.get("shortenedUrl"):
        return data["shortenedUrl"]
    logger.warning("GPLinks rejected %s: %s", url, data)
    return url
