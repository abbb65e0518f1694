from blob_utils.core import listing_url
from blob_utils.pipeline import run_pipeline

from conftest import FakeSession, listing_xml

ACCOUNT = "acct"
BASE = "https://acct.blob.core.windows.net"


def build_session():
    a_url = f"{BASE}/acct1/logs/a.txt"
    c_url = f"{BASE}/acct1/logs/b/c.txt"
    d_url = f"{BASE}/acct1/data/d.csv"
    return FakeSession(
        head_routes={
            f"{BASE}/acct1?restype=container": 200,
            f"{BASE}/missing?restype=container": 404,
        },
        get_routes={
            listing_url(ACCOUNT, "acct1", "logs/"): listing_xml(("logs/a.txt", a_url), ("logs/b/c.txt", c_url)),
            listing_url(ACCOUNT, "acct1", "bad/"): b"<EnumerationResults><Blobs><Blob>",
            listing_url(ACCOUNT, "acct1", "none/"): listing_xml(),
            listing_url(ACCOUNT, "acct1", "data/"): listing_xml(("data/d.csv", d_url)),
            a_url: b"A",
            c_url: b"C",
            d_url: b"D",
        },
    )


def test_pipeline_end_to_end(tmp_path):
    s = build_session()
    res = run_pipeline(s, ACCOUNT, ["acct1", "missing"], ["logs/", "bad/", "none/", "data/"], tmp_path)

    assert res["valid_containers"] == ["acct1"]
    assert (tmp_path / "logs" / "a.txt").read_bytes() == b"A"
    assert (tmp_path / "logs" / "b" / "c.txt").read_bytes() == b"C"
    # a malformed listing does not stop later prefixes
    assert (tmp_path / "data" / "d.csv").read_bytes() == b"D"
    statuses = {prefix: status for _, prefix, status, _ in res["listings"]}
    assert statuses == {"logs/": "ok", "bad/": "decode_error", "none/": "empty", "data/": "ok"}
    assert len(res["errors"]) == 1 and res["errors"][0].startswith("acct1/bad/")
    assert res["stats"]["downloaded"] == 3


def test_pipeline_never_lists_invalid_containers(tmp_path):
    s = build_session()
    run_pipeline(s, ACCOUNT, ["missing"], ["logs/"], tmp_path)
    assert s.urls("GET") == []
    assert list(tmp_path.iterdir()) == []


def test_pipeline_is_sequential_per_listing(tmp_path):
    s = build_session()
    run_pipeline(s, ACCOUNT, ["acct1"], ["logs/", "data/"], tmp_path)
    gets = s.urls("GET")
    data_listing = gets.index(listing_url(ACCOUNT, "acct1", "data/"))
    # both blobs of the first listing were fetched before the second listing was requested
    assert gets.index(f"{BASE}/acct1/logs/a.txt") < data_listing
    assert gets.index(f"{BASE}/acct1/logs/b/c.txt") < data_listing


def test_pipeline_empty_prefix_lists_everything(tmp_path):
    url = f"{BASE}/acct1/x"
    s = FakeSession(
        head_routes={f"{BASE}/acct1?restype=container": 200},
        get_routes={listing_url(ACCOUNT, "acct1", ""): listing_xml(("x", url)), url: b"X"},
    )
    res = run_pipeline(s, ACCOUNT, ["acct1"], [""], tmp_path)
    assert (tmp_path / "x").read_bytes() == b"X"
    assert res["errors"] == []
