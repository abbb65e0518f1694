from __future__ import annotations
from blob_utils.core import get_http_client, list_blobs, validate_containers
from blob_utils.download import dispatch

if __name__ == "__main__":
    session = get_http_client()  # or get_http_client("127.0.0.1:1080")
    for container in validate_containers(session, "myaccount", ["public", "backups"]):
        listing = list_blobs(session, "myaccount", container, "images/")
        if not listing:
            continue
        res = dispatch(session, listing.blobs, "downloads", progress=True)
        print("Downloaded:", len(res["downloaded"]), "Errors:", len(res["errors"]))
