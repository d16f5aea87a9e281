"""Shared JSON fetch for the HTTP-backed sources."""

import asyncio
import json

import aiohttp

from vibedash.results import BAD_PAYLOAD, NETWORK, RATE_LIMITED, Error

TIMEOUT_SECONDS = 10


class FetchError(Exception):
    """Carries the Error value a source should hand back."""

    def __init__(self, error):
        super().__init__(error.message)
        self.error = error


async def fetch_json(url, source, what, params=None, timeout=TIMEOUT_SECONDS):
    """GET url and decode JSON. Raises FetchError; `what` names the data in messages."""
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    try:
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.get(url, params=params) as resp:
                if resp.status == 429:
                    raise FetchError(Error(
                        message=f"Rate limit reached fetching {what}. It will refresh automatically.",
                        retryable=True, code=RATE_LIMITED, source=source))
                if resp.status >= 400:
                    raise FetchError(Error(
                        message=f"Server returned status {resp.status} for {what}.",
                        retryable=True, code=NETWORK, source=source))
                text = await resp.text()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise FetchError(Error(
            message=f"Network error fetching {what}. Check your connection.",
            retryable=True, code=NETWORK, source=source)) from e

    try:
        return json.loads(text)
    except ValueError as e:
        raise FetchError(Error(message=f"Invalid response for {what}.",
                               retryable=True, code=BAD_PAYLOAD, source=source)) from e
