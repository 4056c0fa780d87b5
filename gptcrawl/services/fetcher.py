"""Plain HTTP download used to read sitemap documents.

Sitemaps are often published as ``.xml.gz`` files served without a
``Content-Encoding`` header.  Such bodies are inflated here, so callers always
get XML text back.
"""

import zlib
from urllib.parse import urljoin, urlparse

import httpx

MAX_CONTENT_SIZE = 50 * 1024 * 1024  # 50 MB, the sitemap protocol's own ceiling
TIMEOUT = 15  # seconds
MAX_REDIRECTS = 10
ALLOWED_SCHEMES = {"http", "https"}
USER_AGENT = "gptcrawl/1.0 (+sitemap)"

_GZIP_MAGIC = b"\x1f\x8b"


def _check_url(url: str) -> str:
    """Return *url* unchanged, or raise ValueError if it is not absolute http(s)."""
    parsed = urlparse(url)
    if parsed.scheme not in ALLOWED_SCHEMES:
        raise ValueError(f"Cannot download {url!r}: only http and https are supported.")
    if not parsed.hostname:
        raise ValueError(f"Cannot download {url!r}: the URL has no hostname.")
    return url


async def _read_capped(response: httpx.Response) -> bytes:
    declared = response.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > MAX_CONTENT_SIZE:
        raise RuntimeError(f"{response.url} is larger than {MAX_CONTENT_SIZE} bytes.")

    body = bytearray()
    async for chunk in response.aiter_bytes():
        body.extend(chunk)
        if len(body) > MAX_CONTENT_SIZE:
            raise RuntimeError(f"{response.url} is larger than {MAX_CONTENT_SIZE} bytes.")
    return bytes(body)


def _inflate(body: bytes) -> bytes:
    decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
    try:
        data = decompressor.decompress(body, MAX_CONTENT_SIZE + 1)
    except zlib.error as exc:
        raise RuntimeError(f"Corrupt gzip body: {exc}") from exc
    if len(data) > MAX_CONTENT_SIZE:
        raise RuntimeError(f"Decompressed body is larger than {MAX_CONTENT_SIZE} bytes.")
    return data


async def fetch_text(url: str, *, timeout: float = TIMEOUT) -> str:
    """Download *url* and return the body as text.

    Redirects are followed by hand so each hop is checked before it is
    requested.  Gzip bodies are decompressed.

    Raises:
        ValueError: if the URL (or a redirect target) is not http/https.
        httpx.HTTPError: on network or HTTP errors.
        RuntimeError: if the body is too large or corrupt, or redirects loop.
    """
    current_url = _check_url(url)

    async with httpx.AsyncClient(
        follow_redirects=False,
        timeout=timeout,
        headers={"User-Agent": USER_AGENT},
    ) as client:
        for _ in range(MAX_REDIRECTS + 1):
            async with client.stream("GET", current_url) as response:
                if response.is_redirect:
                    current_url = _check_url(urljoin(current_url, response.headers.get("location", "")))
                    continue
                response.raise_for_status()
                body = await _read_capped(response)
                encoding = response.encoding or "utf-8"

            if body.startswith(_GZIP_MAGIC):
                body, encoding = _inflate(body), "utf-8"
            return body.decode(encoding, errors="replace")

    raise RuntimeError(f"Too many redirects while downloading {url}.")
