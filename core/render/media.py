"""Media slot injection.

Template images live at fixed archive paths. Each slot's bytes are swapped
for the record's asset bytes; the drawing markup that references the part is
never touched. A slot whose source cannot be fetched keeps the template image.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Literal
from urllib.parse import unquote_to_bytes

import httpx

from core.archive.store import ArchiveStore
from core.record.models import GutachtenData
from core.render.models import MediaSlotResult
from core.templates.models import MediaConfig
from core.utils.errors import MediaFetchError
from core.utils.events import log_event

logger = logging.getLogger("gutachten.media")

_REMOTE_PREFIXES = ("http://", "https://")


@dataclass(frozen=True)
class MediaSlot:
    role: Literal["aerial", "photo"]
    slot: int
    part: str
    source: str | None


def plan_media_slots(record: GutachtenData, config: MediaConfig) -> list[MediaSlot]:
    """Pair slot paths with asset sources; photos beyond the slot list are ignored."""

    assets = record.assets
    slots: list[MediaSlot] = []
    if config.aerial is not None:
        source = assets.aerial.image_url if assets is not None and assets.aerial else None
        slots.append(MediaSlot(role="aerial", slot=0, part=config.aerial, source=source or None))

    photos = assets.photos if assets is not None else []
    for position, part in enumerate(config.photos):
        source = photos[position].image_url if position < len(photos) else None
        slots.append(MediaSlot(role="photo", slot=position, part=part, source=source or None))
    return slots


async def fetch_source(source: str, client: httpx.AsyncClient | None) -> bytes:
    """Return bytes for a data: URL, an http(s) URL or a local file path."""

    if source.startswith("data:"):
        data = _decode_data_url(source)
    elif source.startswith(_REMOTE_PREFIXES):
        if client is None:
            raise MediaFetchError("Remote fetching is disabled", source=source)
        try:
            response = await client.get(source)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise MediaFetchError(f"Fetch failed: {exc}", source=source) from exc
        data = response.content
    elif "://" in source:
        raise MediaFetchError("Unsupported media source scheme", source=source)
    else:
        path = Path(source)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise MediaFetchError(f"Cannot read media file: {exc}", source=source) from exc

    if not data:
        raise MediaFetchError("Media source is empty", source=source)
    return data


async def inject_media(
    store: ArchiveStore,
    record: GutachtenData,
    config: MediaConfig,
    *,
    http_client: httpx.AsyncClient | None = None,
    fetch_remote: bool = True,
) -> list[MediaSlotResult]:
    """Fetch every slot concurrently and write the fetched bytes into the archive."""

    slots = plan_media_slots(record, config)
    results: dict[int, MediaSlotResult] = {}
    pending: list[tuple[int, MediaSlot]] = []

    for position, slot in enumerate(slots):
        if not store.has_part(slot.part):
            results[position] = _result(slot, "missing_part")
            log_event(
                logger,
                logging.DEBUG,
                "media_slot_missing",
                role=slot.role,
                slot=slot.slot,
                part=slot.part,
            )
        elif slot.source is None:
            results[position] = _result(slot, "no_source")
        else:
            pending.append((position, slot))

    if pending:
        needs_client = fetch_remote and any(
            slot.source is not None and slot.source.startswith(_REMOTE_PREFIXES)
            for _, slot in pending
        )
        if needs_client and http_client is None:
            async with httpx.AsyncClient(
                timeout=config.fetch_timeout_seconds, follow_redirects=True
            ) as client:
                fetched = await _fetch_all(pending, client, config.max_concurrency)
        else:
            client = http_client if fetch_remote else None
            fetched = await _fetch_all(pending, client, config.max_concurrency)

        for (position, slot), outcome in zip(pending, fetched):
            if isinstance(outcome, MediaFetchError):
                results[position] = _result(slot, "fallback", reason=str(outcome))
                log_event(
                    logger,
                    logging.WARNING,
                    "media_fallback",
                    role=slot.role,
                    slot=slot.slot,
                    part=slot.part,
                    source=_describe_source(slot.source),
                    reason=str(outcome),
                )
                continue
            store.write_part(slot.part, outcome)
            results[position] = _result(slot, "replaced")
            log_event(
                logger,
                logging.INFO,
                "media_replaced",
                role=slot.role,
                slot=slot.slot,
                part=slot.part,
                bytes=len(outcome),
            )

    return [results[position] for position in range(len(slots))]


async def _fetch_all(
    pending: list[tuple[int, MediaSlot]],
    client: httpx.AsyncClient | None,
    max_concurrency: int,
) -> list[bytes | MediaFetchError]:
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def wrapped(source: str) -> bytes | MediaFetchError:
        async with semaphore:
            try:
                return await fetch_source(source, client)
            except MediaFetchError as exc:
                return exc

    tasks = [asyncio.create_task(wrapped(slot.source or "")) for _, slot in pending]
    return list(await asyncio.gather(*tasks))


def _decode_data_url(source: str) -> bytes:
    header, separator, payload = source.partition(",")
    if not separator:
        raise MediaFetchError("Malformed data URL", source=_describe_source(source))
    if header.endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise MediaFetchError(
                f"Invalid base64 payload: {exc}", source=_describe_source(source)
            ) from exc
    return unquote_to_bytes(payload)


def _describe_source(source: str | None) -> str | None:
    if source is not None and source.startswith("data:"):
        return source.partition(",")[0] + ",..."
    return source


def _result(slot: MediaSlot, status: str, *, reason: str | None = None) -> MediaSlotResult:
    return MediaSlotResult(
        role=slot.role,
        slot=slot.slot,
        part=slot.part,
        status=status,  # type: ignore[arg-type]
        source=_describe_source(slot.source),
        reason=reason,
    )
