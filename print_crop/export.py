"""
Batch export of one order's prints.

``finalize_order`` is the single entry point the storefront calls when a
customer confirms an order.  Each image is fetched at full resolution,
cropped with the same ``compute_crop`` the preview used, composited, encoded
and uploaded to the media store.  A failing image never aborts the batch:
the worker turns every exception into a failure record and the result always
accounts for every input image.

Images run on a small thread pool (``EXPORT_WORKERS``): the slow parts are
network fetch and upload, and every in-flight image holds a full-resolution
buffer.  Results are collected on the calling thread as futures complete.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable

import requests

from print_crop.compositing import render
from print_crop.config import (
    EXPORT_WORKERS, EXPORT_RETRIES, RETRY_BACKOFF_SECONDS, JPEG_QUALITY_DEFAULT,
)
from print_crop.formats import FormatCatalog
from print_crop.image_io import decode_image, encode_jpeg, fetch_source
from print_crop.media_store import MediaStore, MediaStoreError
from print_crop.models import Assignment, SourceImage, ViewState

logger = logging.getLogger(__name__)

# Failures worth another attempt; anything else fails the image immediately
TRANSIENT_ERRORS = (requests.RequestException, TimeoutError, ConnectionError, MediaStoreError)

# Client errors that can still clear up on their own (timeout, rate limit)
_RETRYABLE_CLIENT_STATUSES = {408, 429}

CANCELLED = "cancelled"


# =============================================================================
# Data classes
# =============================================================================
class ExportStatus(str, Enum):
    PENDING = "pending"
    EXPORTING = "exporting"
    COMPLETED = "completed"
    COMPLETED_WITH_FAILURES = "completed_with_failures"


@dataclass(frozen=True)
class ExportItem:
    """One image of the order as persisted by the storefront."""
    image_id: str
    source: str | Path
    view_state: ViewState
    assignment: Assignment | None = None
    natural_size: tuple[int, int] | None = None
    asset_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "ExportItem":
        """Build an item from the storefront's camelCase record."""
        assignment = data.get("assignment")
        if isinstance(assignment, dict):
            assignment = Assignment(
                slot_id=str(assignment.get("slotId", "")),
                format_name=assignment.get("formatName") or assignment.get("format") or "",
            )
        natural = None
        if "naturalWidth" in data or "naturalHeight" in data:
            natural = (data.get("naturalWidth"), data.get("naturalHeight"))
        return cls(
            image_id=str(data["imageId"]),
            source=data["source"],
            view_state=ViewState.from_dict(data.get("viewState")),
            assignment=assignment,
            natural_size=natural,
            asset_id=data.get("assetId"),
        )


@dataclass(frozen=True)
class ExportSuccess:
    image_id: str
    asset_id: str
    url: str


@dataclass(frozen=True)
class ExportFailure:
    image_id: str
    reason: str


@dataclass
class ExportResult:
    order_id: str
    status: ExportStatus
    succeeded: list[ExportSuccess] = field(default_factory=list)
    failed: list[ExportFailure] = field(default_factory=list)

    def failed_ids(self) -> list[str]:
        """Image ids to offer the customer for a retry."""
        return [f.image_id for f in self.failed]

    def to_dict(self) -> dict:
        return {
            "orderId": self.order_id,
            "status": self.status.value,
            "succeeded": [
                {"imageId": s.image_id, "assetId": s.asset_id, "url": s.url} for s in self.succeeded
            ],
            "failed": [{"imageId": f.image_id, "reason": f.reason} for f in self.failed],
        }


# =============================================================================
# Worker
# =============================================================================
def is_transient(exc: BaseException) -> bool:
    """True if *exc* is worth another attempt.

    HTTP 4xx responses are permanent (missing or forbidden source), except
    request timeouts and rate limiting.
    """
    if not isinstance(exc, TRANSIENT_ERRORS):
        return False
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        status = exc.response.status_code
        return not (400 <= status < 500) or status in _RETRYABLE_CLIENT_STATUSES
    return True


def with_retries(
    func: Callable,
    what: str,
    image_id: str,
    retries: int = EXPORT_RETRIES,
    backoff: float = RETRY_BACKOFF_SECONDS,
):
    """Call *func*, retrying transient failures up to *retries* extra times."""
    attempt = 0
    while True:
        try:
            return func()
        except TRANSIENT_ERRORS as exc:
            if attempt >= retries or not is_transient(exc):
                raise
            attempt += 1
            logger.debug("%s for image %s failed (%s) — retry %d/%d", what, image_id, exc, attempt, retries)
            if backoff:
                time.sleep(backoff * attempt)


def export_worker(args: dict) -> dict:
    """Export one image. Runs in a pool thread and never raises.

    Returns ``{"index", "image_id", "success", ...}`` with ``asset_id``/``url``
    on success and ``error`` on failure.
    """
    idx = args["index"]
    item: ExportItem = args["item"]
    cancel: threading.Event = args["cancel"]
    retries = args.get("retries", EXPORT_RETRIES)
    backoff = args.get("backoff", RETRY_BACKOFF_SECONDS)

    def _cancelled() -> dict:
        return {"index": idx, "image_id": item.image_id, "success": False, "error": CANCELLED}

    if cancel.is_set():
        return _cancelled()

    try:
        recorded = item.natural_size
        if recorded is not None:
            SourceImage(*recorded).validate()

        catalog: FormatCatalog = args["catalog"]
        if item.assignment is not None:
            print_format = catalog.get(item.assignment.format_name)
        else:
            print_format = catalog.default

        data = with_retries(lambda: args["fetch"](item.source), "fetch", item.image_id, retries, backoff)
        image = decode_image(data, name=str(item.source))
        if recorded is not None and tuple(recorded) != image.size:
            raise ValueError(
                f"dimension mismatch: recorded {recorded[0]}x{recorded[1]}, "
                f"source is {image.width}x{image.height}"
            )

        finished = render(image, print_format, item.view_state)
        payload = encode_jpeg(finished, quality=args.get("jpeg_quality", JPEG_QUALITY_DEFAULT))
        del image, finished

        # Last point where an order invalidation can still skip this image
        if cancel.is_set():
            return _cancelled()

        asset_id = item.asset_id or f"{args['order_id']}/{item.image_id}"
        store: MediaStore = args["store"]
        url = with_retries(lambda: store.put(payload, asset_id), "upload", item.image_id, retries, backoff)
        return {"index": idx, "image_id": item.image_id, "success": True, "asset_id": asset_id, "url": url}
    except Exception as e:
        return {"index": idx, "image_id": item.image_id, "success": False, "error": str(e) or type(e).__name__}


# =============================================================================
# Orchestrator
# =============================================================================
class BatchExporter:
    """Runs one order's export: ``PENDING -> EXPORTING -> COMPLETED[_WITH_FAILURES]``."""

    def __init__(
        self,
        order_id: str,
        items: list[ExportItem],
        store: MediaStore,
        catalog: FormatCatalog | None = None,
        fetch: Callable = fetch_source,
        workers: int = EXPORT_WORKERS,
        retries: int = EXPORT_RETRIES,
        backoff: float = RETRY_BACKOFF_SECONDS,
        jpeg_quality: int = JPEG_QUALITY_DEFAULT,
    ):
        ids = [item.image_id for item in items]
        if len(set(ids)) != len(ids):
            raise ValueError(f"order {order_id}: duplicate image ids in export list")
        self.order_id = order_id
        self.items = list(items)
        self.store = store
        self.catalog = catalog or FormatCatalog.builtin()
        self.fetch = fetch
        self.workers = max(1, workers)
        self.retries = retries
        self.backoff = backoff
        self.jpeg_quality = jpeg_quality
        self.status = ExportStatus.PENDING
        self._cancel = threading.Event()

    def cancel(self):
        """Stop starting new images; in-flight uploads finish untouched."""
        self._cancel.set()

    def _worker_args(self, index: int, item: ExportItem) -> dict:
        return {
            "index": index,
            "item": item,
            "order_id": self.order_id,
            "catalog": self.catalog,
            "fetch": self.fetch,
            "store": self.store,
            "retries": self.retries,
            "backoff": self.backoff,
            "jpeg_quality": self.jpeg_quality,
            "cancel": self._cancel,
        }

    def run(self) -> ExportResult:
        if self.status is not ExportStatus.PENDING:
            raise RuntimeError(f"order {self.order_id}: export already {self.status.value}")
        self.status = ExportStatus.EXPORTING

        total = len(self.items)
        logger.info("Exporting order %s: %d image(s), %d worker(s)", self.order_id, total, self.workers)

        results: dict[int, dict] = {}
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = [
                executor.submit(export_worker, self._worker_args(i, item))
                for i, item in enumerate(self.items)
            ]
            for future in as_completed(futures):
                result = future.result()
                results[result["index"]] = result
                if not result["success"]:
                    logger.warning(
                        "Order %s: image %s failed: %s",
                        self.order_id, result["image_id"], result["error"],
                    )

        result = ExportResult(order_id=self.order_id, status=ExportStatus.COMPLETED)
        for index in range(total):
            r = results[index]
            if r["success"]:
                result.succeeded.append(ExportSuccess(r["image_id"], r["asset_id"], r["url"]))
            else:
                result.failed.append(ExportFailure(r["image_id"], r["error"]))

        if result.failed:
            result.status = ExportStatus.COMPLETED_WITH_FAILURES
        self.status = result.status
        logger.info(
            "Order %s export %s: %d succeeded, %d failed",
            self.order_id, result.status.value, len(result.succeeded), len(result.failed),
        )
        return result


def prune_orphans(store: MediaStore, stored_ids: list[str], keep_ids: list[str]) -> list[str]:
    """Delete stored assets of the order that are no longer part of it.

    Individual delete failures are logged and skipped.  Returns the ids
    actually deleted.
    """
    keep = set(keep_ids)
    deleted = []
    for asset_id in stored_ids:
        if asset_id in keep:
            continue
        try:
            if store.delete(asset_id):
                deleted.append(asset_id)
        except (MediaStoreError, ValueError) as exc:
            logger.warning("Could not delete orphaned asset %s: %s", asset_id, exc)
    if deleted:
        logger.info("Deleted %d orphaned asset(s)", len(deleted))
    return deleted


def _record_id(record, index: int) -> str:
    """Best-effort image id of a raw record, for failure reports."""
    if isinstance(record, ExportItem):
        return record.image_id
    if isinstance(record, dict) and record.get("imageId") is not None:
        return str(record["imageId"])
    return f"#{index}"


def _record_asset_id(order_id: str, record, index: int) -> str:
    asset_id = record.asset_id if isinstance(record, ExportItem) else (
        record.get("assetId") if isinstance(record, dict) else None
    )
    return asset_id or f"{order_id}/{_record_id(record, index)}"


def finalize_order(
    order_id: str,
    items: list,
    store: MediaStore,
    catalog: FormatCatalog | None = None,
    fetch: Callable = fetch_source,
    previous_asset_ids: list[str] | None = None,
    **options,
) -> ExportResult:
    """Export every image of *order_id* and return ``{succeeded, failed}``.

    *items* are ExportItem instances or the storefront's plain dict records.
    A record that cannot be parsed fails on its own; the rest still export.
    *previous_asset_ids* lists assets stored for the order before; those not
    belonging to any current image are deleted after the export.  Extra
    keyword options (``workers``, ``retries``, ``backoff``, ``jpeg_quality``)
    go to BatchExporter.

    Raises ValueError only for duplicate image ids.
    """
    ids = [_record_id(record, i) for i, record in enumerate(items)]
    if len(set(ids)) != len(ids):
        raise ValueError(f"order {order_id}: duplicate image ids in export list")

    parsed: list[ExportItem] = []
    rejected: dict[str, ExportFailure] = {}
    for index, record in enumerate(items):
        if isinstance(record, ExportItem):
            parsed.append(record)
            continue
        try:
            parsed.append(ExportItem.from_dict(record))
        except Exception as e:
            image_id = ids[index]
            reason = f"invalid record: {str(e) or type(e).__name__}"
            logger.warning("Order %s: image %s failed: %s", order_id, image_id, reason)
            rejected[image_id] = ExportFailure(image_id, reason)

    exporter = BatchExporter(order_id, parsed, store, catalog=catalog, fetch=fetch, **options)
    result = exporter.run()

    if rejected:
        # Report every image in input order
        failed = {f.image_id: f for f in result.failed}
        failed.update(rejected)
        result.failed = [failed[image_id] for image_id in ids if image_id in failed]
        result.status = ExportStatus.COMPLETED_WITH_FAILURES

    if previous_asset_ids:
        keep = [_record_asset_id(order_id, record, i) for i, record in enumerate(items)]
        prune_orphans(store, previous_asset_ids, keep)

    return result
