from __future__ import annotations
from blob_utils.core import get_http_client
from blob_utils.pipeline import run_pipeline
from blob_utils.utils import read_lines

if __name__ == "__main__":
    with get_http_client() as session:
        res = run_pipeline(
            session,
            account="myaccount",
            containers=read_lines("names.txt"),
            prefixes=read_lines("prefixes.txt"),
            dst_root="myaccount",
            progress=True,
        )
    print("Valid containers:", res["valid_containers"])
    print("Downloaded:", len(res["downloaded"]), "Errors:", len(res["errors"]))
