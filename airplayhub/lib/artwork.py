"""Album art lookup via the iTunes Search API."""

import logging

import aiohttp

from .state import GENERIC_ART

logger = logging.getLogger("airplayhub.artwork")

ITUNES_SEARCH_URL = "https://itunes.apple.com/search"


async def lookup_artwork(session: aiohttp.ClientSession, artist: str | None,
                         album: str | None) -> str:
    """Return a 600x600 artwork URL, or the generic image when nothing is found."""
    term = " ".join(p for p in (artist, album) if p)
    if not term:
        return GENERIC_ART
    try:
        async with session.get(
            ITUNES_SEARCH_URL,
            params={"term": term, "entity": "album", "limit": "1"},
            timeout=aiohttp.ClientTimeout(total=5),
        ) as resp:
            resp.raise_for_status()
            # iTunes answers with text/javascript, so skip the content-type check
            data = await resp.json(content_type=None)
    except Exception as e:
        logger.warning("Artwork lookup failed for %r: %s", term, e)
        return GENERIC_ART

    if not isinstance(data, dict):
        logger.warning("Unexpected artwork response for %r: %r", term, data)
        return GENERIC_ART
    results = data.get("results")
    if not data.get("resultCount") or not isinstance(results, list) or not results:
        logger.debug("No artwork for %r", term)
        return GENERIC_ART
    first = results[0]
    url = first.get("artworkUrl100") if isinstance(first, dict) else None
    if not isinstance(url, str) or not url:
        return GENERIC_ART
    return url.replace("100x100", "600x600")
