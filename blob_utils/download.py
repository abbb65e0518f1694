from __future__ import annotations
from typing import Iterable, List, Tuple, Optional, Dict
from dataclasses import dataclass
from pathlib import Path
from concurrent.futures import ThreadPoolExecutor
import queue
import threading

import requests
from tqdm import tqdm

from .core import BlobDescriptor, iter_body, request_deadline
from .errors import FileWriteError, TransportError, get_logger
from .utils import ensure_dir, human_bytes, is_within, resolve_local_path

log = get_logger(__name__)

DOWNLOAD_WORKERS = 10
JOB_QUEUE_SIZE = 10
CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class DownloadJob:
    name: str
    source_url: str
    dest_path: Path


def download_file(session: requests.Session, url: str, dst_path: str | Path) -> int:
    """
    Stream `url` into `dst_path`, truncating any existing file. Returns bytes written.
    The body is saved whatever the HTTP status; error statuses are only logged.
    """
    dst = Path(dst_path)
    deadline = request_deadline(session)
    try:
        resp = session.get(url, stream=True)
    except requests.RequestException as e:
        raise TransportError(f"GET {url} failed: {e}") from e

    written = 0
    with resp:
        if resp.status_code >= 300:
            log.warning("GET %s returned HTTP %s, saving the response body anyway", url, resp.status_code)
        try:
            f = open(dst, "wb")
        except OSError as e:
            raise FileWriteError(f"cannot create {dst}: {e}") from e
        with f:
            try:
                for chunk in iter_body(resp, deadline, chunk_size=CHUNK_SIZE):
                    f.write(chunk)
                    written += len(chunk)
            except (requests.RequestException, TransportError) as e:
                raise TransportError(f"reading {url} failed after {written} bytes: {e}") from e
            except OSError as e:
                raise FileWriteError(f"writing {dst} failed: {e}") from e
    return written


def _prepare_job(blob: BlobDescriptor, dst_root: Path) -> DownloadJob:
    dst = resolve_local_path(dst_root, blob.name)
    if not is_within(dst_root, dst):
        raise FileWriteError(f"blob name {blob.name!r} resolves outside {dst_root}")
    try:
        ensure_dir(dst.parent)
    except OSError as e:
        raise FileWriteError(f"Error creating directory {dst.parent}: {e}") from e
    return DownloadJob(name=blob.name, source_url=blob.url, dest_path=dst)


def dispatch(
    session: requests.Session,
    blobs: Iterable[BlobDescriptor],
    dst_root: str | Path,
    max_workers: int = DOWNLOAD_WORKERS,
    queue_size: int = JOB_QUEUE_SIZE,
    progress: bool = False,
) -> Dict[str, List]:
    """
    Download one listing with a fixed worker pool fed through a bounded queue.

    Destination directories are created before a job is queued; a blob whose
    directory cannot be created is dropped and reported in `errors`.
    Returns only after every worker has drained the queue and exited.
    """
    blobs_list = list(blobs)
    dst_root = Path(dst_root)
    downloaded: List[Tuple[str, str]] = []
    errors: List[str] = []
    if not blobs_list:
        return {"downloaded": downloaded, "errors": errors, "stats": _stats(dst_root, 0, 0, 0)}

    lock = threading.Lock()
    jobs: "queue.Queue[Optional[DownloadJob]]" = queue.Queue(maxsize=queue_size)
    bar = tqdm(total=len(blobs_list), desc="Download", unit="blob") if progress else None

    def _worker() -> None:
        while True:
            job = jobs.get()
            if job is None:
                return
            log.debug("Downloading %s to %s", job.source_url, job.dest_path)
            try:
                size = download_file(session, job.source_url, job.dest_path)
            except Exception as e:
                log.error("Failed to download %s: %s", job.source_url, e)
                with lock:
                    errors.append(f"{job.name}: {e}")
            else:
                log.info("Successfully downloaded blob file to %s (%s)", job.dest_path, human_bytes(size))
                with lock:
                    downloaded.append((job.name, str(job.dest_path)))
            finally:
                if bar:
                    bar.update(1)

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="download") as ex:
        futs = [ex.submit(_worker) for _ in range(max_workers)]
        try:
            for blob in blobs_list:
                try:
                    job = _prepare_job(blob, dst_root)
                except FileWriteError as e:
                    log.error("%s", e)
                    with lock:
                        errors.append(f"{blob.name}: {e}")
                    if bar:
                        bar.update(1)
                    continue
                jobs.put(job)
        finally:
            # one sentinel per worker closes the queue
            for _ in futs:
                jobs.put(None)
        for f in futs:
            f.result()

    if bar:
        bar.close()

    downloaded.sort(key=lambda x: x[0])
    return {
        "downloaded": downloaded,
        "errors": errors,
        "stats": _stats(dst_root, len(blobs_list), len(downloaded), len(errors)),
    }


def _stats(dst_root: Path, total: int, ok: int, failed: int) -> Dict[str, object]:
    return {
        "dst_root": str(dst_root),
        "total": total,
        "downloaded": ok,
        "errors_count": failed,
    }
