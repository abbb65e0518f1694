from __future__ import annotations
from typing import Dict, List, Tuple
from pathlib import Path

import requests

from .core import list_blobs, validate_containers
from .download import dispatch
from .errors import get_logger

log = get_logger(__name__)


def run_pipeline(
    session: requests.Session,
    account: str,
    containers: List[str],
    prefixes: List[str],
    dst_root: str | Path,
    progress: bool = False,
) -> Dict[str, List]:
    """
    Validate candidate containers, then for every (container, prefix) pair list
    matching blobs and download them under `dst_root`.

    Pairs are processed strictly one after another; only the downloads of a
    single listing run in parallel.
    """
    valid = validate_containers(session, account, containers)
    log.debug("%d of %d containers are reachable", len(valid), len(containers))

    listings: List[Tuple[str, str, str, int]] = []
    downloaded: List[Tuple[str, str]] = []
    errors: List[str] = []

    for container in valid:
        for prefix in prefixes:
            listing = list_blobs(session, account, container, prefix)
            listings.append((container, prefix, listing.status, len(listing)))
            if listing.status in {"transport_error", "decode_error"}:
                errors.append(f"{container}/{prefix}: {listing.error}")
                continue
            if not listing:
                continue

            res = dispatch(session, listing.blobs, dst_root, progress=progress)
            downloaded.extend(res["downloaded"])
            errors.extend(f"{container}/{e}" for e in res["errors"])

    return {
        "valid_containers": valid,
        "listings": listings,
        "downloaded": downloaded,
        "errors": errors,
        "stats": {
            "account": account,
            "dst_root": str(dst_root),
            "containers_total": len(containers),
            "containers_valid": len(valid),
            "prefixes": len(prefixes),
            "listings": len(listings),
            "downloaded": len(downloaded),
            "errors_count": len(errors),
        },
    }
