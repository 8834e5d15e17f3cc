"""
Media payload assembly.

Turns Media entities into multipart file parts. A media "data" attribute is
one of:
- an inline data URI   (data:image/png;base64,iVBOR...)
- an http(s) URL       (fetched with the shared httpx client)
- a local file path    (read with aiofiles; file:// URLs too)

Payloads are loaded one after another; a record's submission never runs
its media fetches in parallel.
"""

import re
import base64
import binascii
import logging
from pathlib import Path
from typing import List, Optional, Tuple, TYPE_CHECKING
from urllib.parse import unquote, unquote_to_bytes, urlparse

import aiofiles
import httpx

from .errors import MediaError

if TYPE_CHECKING:
    from .models.media import Media

logger = logging.getLogger(__name__)

# RFC 2397 data URL
DATA_URL_RE = re.compile(
    r"^\s*data:([a-z]+/[a-z0-9\-+.]+(;[a-z\-]+=[a-z0-9\-]+)*)?(;base64)?,[a-z0-9!$&',()*+;=\-._~:@/?%\s]*\s*$",
    re.IGNORECASE,
)

# (field name, (filename, content, mime type))
MediaPart = Tuple[str, Tuple[str, bytes, str]]


def is_data_url(value: Optional[str]) -> bool:
    """
    Detect inline data URIs.

    Examples:
        >>> is_data_url("data:image/png;base64,iVBORw0KGgo=")
        True
        >>> is_data_url("https://example.org/photo.jpg")
        False
    """
    if not value:
        return False
    return bool(DATA_URL_RE.match(str(value)))


def data_uri_to_bytes(data_uri: str) -> Tuple[bytes, Optional[str]]:
    """
    Decode a data URI.

    Returns:
        (payload bytes, declared mime type or None)

    Raises:
        MediaError: If the URI is not a valid data URI
    """
    if not is_data_url(data_uri):
        raise MediaError("Not a data URI")

    header, _, payload = data_uri.strip().partition(",")
    params = header[len("data:"):].split(";")
    mime = params[0] or None

    if "base64" in params[1:]:
        try:
            return base64.b64decode("".join(payload.split()), validate=True), mime
        except (binascii.Error, ValueError) as e:
            raise MediaError(f"Invalid base64 payload in data URI: {e}") from e
    return unquote_to_bytes(payload), mime


def media_type_and_extension(media_type: str) -> Tuple[str, str]:
    """
    Normalize a media type.

    Both "image/jpeg" and the bare extension "jpeg" are accepted; a bare
    extension is taken to be an image type.

    Returns:
        (mime type, file extension)
    """
    media_type = media_type.strip()
    if "/" in media_type:
        return media_type, media_type.split("/", 1)[1]
    return f"image/{media_type}", media_type


async def _read_file(path: Path) -> bytes:
    try:
        async with aiofiles.open(path, "rb") as f:
            return await f.read()
    except OSError as e:
        raise MediaError(f"Cannot read media file {path}: {e}") from e


async def _fetch_url(url: str, client: httpx.AsyncClient, timeout: Optional[float]) -> bytes:
    try:
        response = await client.get(url, timeout=timeout)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise MediaError(f"Fetching media {url} failed with {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise MediaError(f"Fetching media {url} failed: {e}") from e
    return response.content


async def load_media_bytes(
    media: 'Media',
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = None,
) -> bytes:
    """
    Load the binary payload of a media entity.

    Args:
        media: Media entity
        client: HTTP client for remote URLs
        timeout: Fetch timeout in seconds

    Returns:
        Payload bytes

    Raises:
        MediaError: If the payload is missing or cannot be read
    """
    url = media.get_url()
    if not url:
        raise MediaError(f"Media {media.cid} has no data")

    if is_data_url(url):
        payload, _ = data_uri_to_bytes(url)
        return payload

    parsed = urlparse(url)
    if parsed.scheme in ("http", "https"):
        if client is None:
            raise MediaError(f"Media {media.cid} needs an HTTP client to fetch {url}")
        return await _fetch_url(url, client, timeout)
    if parsed.scheme == "file":
        return await _read_file(Path(unquote(parsed.path)))
    if not parsed.scheme or len(parsed.scheme) == 1:
        # plain path (a one-letter scheme is a Windows drive)
        return await _read_file(Path(url))

    raise MediaError(f"Unsupported media reference scheme: {parsed.scheme}")


async def build_media_parts(
    media_list: List['Media'],
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = None,
) -> List[MediaPart]:
    """
    Build multipart file parts for a list of media entities.

    Each part is named by the media's client id, with filename
    "<cid>.<extension>".
    """
    parts: List[MediaPart] = []
    for media in media_list:
        media_type = media.media_type
        if not media_type:
            raise MediaError(f"Media {media.cid} has no type")
        mime, extension = media_type_and_extension(media_type)
        payload = await load_media_bytes(media, client, timeout)
        parts.append((media.cid, (f"{media.cid}.{extension}", payload, mime)))
        logger.debug(f"Prepared media {media.cid} ({mime}, {len(payload)} bytes)")
    return parts
