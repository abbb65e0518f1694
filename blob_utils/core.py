from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple
from urllib.parse import quote, urlencode
import logging
import time
import xml.etree.ElementTree as ET

import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import LocationParseError
from urllib3.util import parse_url

from .errors import ConfigError, ListingDecodeError, TransportError

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
BLOB_HOST = "{account}.blob.core.windows.net"
POOL_SIZE = 10


@dataclass(frozen=True)
class BlobDescriptor:
    name: str
    url: str


@dataclass
class ListingResult:
    container: str
    prefix: str
    url: str
    status: str  # "ok" | "empty" | "decode_error" | "transport_error"
    blobs: List[BlobDescriptor] = field(default_factory=list)
    body: str = ""
    error: Optional[str] = None

    def __len__(self) -> int:
        return len(self.blobs)

    def __iter__(self):
        return iter(self.blobs)


class TimeoutSession(requests.Session):
    """
    requests.Session that applies one timeout to every request it sends.
    requests only bounds each connect and each socket read with it; body reads
    go through `iter_body` to bound the whole request.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        super().__init__()
        self.timeout = timeout

    def request(self, method, url, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        return super().request(method, url, **kwargs)


def request_deadline(session: requests.Session) -> Optional[float]:
    """Monotonic time by which a request started now must have finished, if the session has a timeout."""
    timeout = getattr(session, "timeout", None)
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        return None
    return time.monotonic() + timeout


def iter_body(resp: requests.Response, deadline: Optional[float], chunk_size: int = 64 * 1024) -> Iterator[bytes]:
    for chunk in resp.iter_content(chunk_size=chunk_size):
        if deadline is not None and time.monotonic() > deadline:
            raise TransportError("request exceeded its timeout while reading the body")
        if chunk:
            yield chunk


def parse_socks_proxy(address: str) -> str:
    """
    Validate a SOCKS5 'host:port' and return the proxy URL requests expects.
    Hostnames are resolved on the proxy side (socks5h).
    """
    raw = (address or "").strip()
    if "://" in raw:
        scheme, _, rest = raw.partition("://")
        if scheme.lower() not in {"socks5", "socks5h"}:
            raise ConfigError(f"Invalid SOCKS proxy address: unsupported scheme {scheme!r}")
        raw = rest
    try:
        parsed = parse_url(f"socks5h://{raw}")
    except LocationParseError as e:
        raise ConfigError(f"Invalid SOCKS proxy address: {address!r}") from e
    if not parsed.host or parsed.port is None:
        raise ConfigError(f"Invalid SOCKS proxy address {address!r}: expected host:port")
    if parsed.path not in (None, "", "/") or parsed.query:
        raise ConfigError(f"Invalid SOCKS proxy address {address!r}: expected host:port")
    auth = f"{parsed.auth}@" if parsed.auth else ""
    return f"socks5h://{auth}{parsed.host}:{parsed.port}"


def get_http_client(socks_proxy: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT) -> requests.Session:
    """
    Create the single HTTP session shared by validation, listing and downloads.
    No retries; the adapter pool fits every download worker.
    """
    session = TimeoutSession(timeout=timeout)
    adapter = HTTPAdapter(pool_connections=POOL_SIZE, pool_maxsize=POOL_SIZE, max_retries=0)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    if socks_proxy:
        proxy_url = parse_socks_proxy(socks_proxy)
        session.proxies.update({"http": proxy_url, "https": proxy_url})
        # environment proxies must not bypass the tunnel
        session.trust_env = False
        log.debug("Routing all traffic through SOCKS5 proxy %s", proxy_url)
    return session


# ---------------- Container validation ----------------
def container_url(account: str, container: str) -> str:
    return f"https://{BLOB_HOST.format(account=account)}/{container}"


def blob_url(account: str, container: str, name: str) -> str:
    return f"{container_url(account, container)}/{quote(name, safe='/')}"


def container_exists(session: requests.Session, account: str, container: str) -> bool:
    """
    HEAD the container metadata; True only on HTTP 200.
    Transport errors are logged and count as 'not found'.
    """
    url = f"{container_url(account, container)}?restype=container"
    try:
        resp = session.head(url, allow_redirects=True)
    except requests.RequestException as e:
        log.error('Error checking container "%s": %s', container, e)
        return False
    resp.close()
    if resp.status_code == 200:
        log.info('Container "%s" found!', container)
        return True
    log.debug('Container "%s" not found (HTTP %s), skipping.', container, resp.status_code)
    return False


def validate_containers(session: requests.Session, account: str, names: List[str]) -> List[str]:
    """Check every candidate once; keep the reachable ones in input order."""
    return [name for name in names if container_exists(session, account, name)]


# ---------------- Listing ----------------
def listing_url(account: str, container: str, prefix: str, marker: Optional[str] = None) -> str:
    params = {"restype": "container", "comp": "list", "prefix": prefix}
    if marker:
        params["marker"] = marker
    return f"{container_url(account, container)}?{urlencode(params, safe='/')}"


def parse_listing(body: bytes | str, account: str = "", container: str = "") -> Tuple[List[BlobDescriptor], Optional[str]]:
    """
    Decode an EnumerationResults document into (blobs, next_marker).
    Blob order is kept as the server sent it.
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
        raise ListingDecodeError(f"Error parsing XML: {e}", body=text) from e

    blobs: List[BlobDescriptor] = []
    for node in root.findall("./Blobs/Blob"):
        name = node.findtext("Name") or ""
        url = (node.findtext("Url") or "").strip()
        if not url and account and container:
            url = blob_url(account, container, name)
        blobs.append(BlobDescriptor(name=name, url=url))
    next_marker = (root.findtext("NextMarker") or "").strip() or None
    return blobs, next_marker


def _fetch_listing_page(session: requests.Session, url: str) -> bytes:
    deadline = request_deadline(session)
    try:
        resp = session.get(url, stream=True)
    except requests.RequestException as e:
        raise TransportError(f"Error accessing URL {url}: {e}") from e
    try:
        return b"".join(iter_body(resp, deadline))
    except (requests.RequestException, TransportError) as e:
        raise TransportError(f"Error reading response body from {url}: {e}") from e
    finally:
        resp.close()


def list_blobs(session: requests.Session, account: str, container: str, prefix: str) -> ListingResult:
    """
    List blobs in `container` whose names start with `prefix`, following NextMarker.
    Never raises for network or decode problems: the result status says what happened.
    """
    first_url = listing_url(account, container, prefix)
    result = ListingResult(container=container, prefix=prefix, url=first_url, status="ok")
    blobs: List[BlobDescriptor] = []
    marker: Optional[str] = None
    seen_markers = set()

    while True:
        url = listing_url(account, container, prefix, marker)
        log.debug("Requesting Blob: %s", url)
        try:
            body = _fetch_listing_page(session, url)
            page, marker = parse_listing(body, account=account, container=container)
        except TransportError as e:
            log.error("%s", e)
            result.status, result.error = "transport_error", str(e)
            return result
        except ListingDecodeError as e:
            log.error("%s", e)
            log.error("Response Content: %s", e.body)
            result.status, result.error, result.body = "decode_error", str(e), e.body
            return result
        blobs.extend(page)
        if not marker or marker in seen_markers:
            break
        seen_markers.add(marker)

    result.blobs = blobs
    if not blobs:
        result.status = "empty"
        log.debug('Prefix "%s" has no blobs in container "%s"!', prefix, container)
    else:
        log.info('Prefix "%s" has %d blobs in container "%s"!', prefix, len(blobs), container)
    return result
