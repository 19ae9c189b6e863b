"""New-listing feed: pump.fun create events from Solana log subscriptions."""

import asyncio
import base64
import binascii
import hashlib
import json
import logging
import struct
from collections.abc import AsyncGenerator

import websockets
from solders.pubkey import Pubkey

from pumpbot.config import settings
from pumpbot.schemas.market import NewListingEvent
from pumpbot.services.collaborators import ListingCallback

logger = logging.getLogger(__name__)

PROGRAM_DATA_PREFIX = "Program data: "
# Anchor event discriminator: first 8 bytes of sha256("event:<Name>")
CREATE_EVENT_DISCRIMINATOR = hashlib.sha256(b"event:CreateEvent").digest()[:8]
RECONNECT_DELAY_S = 2


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._offset = 0

    def take(self, size: int) -> bytes:
        end = self._offset + size
        if end > len(self._data):
            raise ValueError("truncated event payload")
        chunk = self._data[self._offset : end]
        self._offset = end
        return chunk

    def string(self) -> str:
        (length,) = struct.unpack("<I", self.take(4))
        return self.take(length).decode("utf-8", errors="replace")

    def pubkey(self) -> str:
        return str(Pubkey.from_bytes(self.take(32)))


def decode_create_event(logs: list[str], signature: str, slot: int) -> NewListingEvent | None:
    """Find and decode a CreateEvent in a transaction's log lines."""
    for line in logs:
        if not line.startswith(PROGRAM_DATA_PREFIX):
            continue
        try:
            raw = base64.b64decode(line[len(PROGRAM_DATA_PREFIX) :], validate=True)
        except (binascii.Error, ValueError):
            continue
        if raw[:8] != CREATE_EVENT_DISCRIMINATOR:
            continue
        reader = _Reader(raw[8:])
        try:
            name = reader.string()
            symbol = reader.string()
            reader.string()  # metadata uri
            mint = reader.pubkey()
            bonding_curve = reader.pubkey()
            creator = reader.pubkey()
        except (ValueError, struct.error) as e:
            logger.debug("Malformed CreateEvent in %s: %s", signature, e)
            return None
        return NewListingEvent(
            token_id=mint,
            creator_id=creator,
            signature=signature,
            slot=slot,
            name=name,
            symbol=symbol,
            bonding_curve=bonding_curve,
        )
    return None


async def stream_create_events(
    ws_url: str, program_id: str
) -> AsyncGenerator[NewListingEvent, None]:
    async with websockets.connect(ws_url) as connection:
        subscribe_message = json.dumps({
            "jsonrpc": "2.0",
            "id": 1,
            "method": "logsSubscribe",
            "params": [{"mentions": [program_id]}, {"commitment": "processed"}],
        })
        await connection.send(subscribe_message)

        async for message in connection:
            data = json.loads(message)
            if data.get("method") != "logsNotification":
                continue
            result = data.get("params", {}).get("result", {})
            value = result.get("value", {})
            if value.get("err") is not None:
                continue
            event = decode_create_event(
                value.get("logs") or [],
                signature=value.get("signature", ""),
                slot=int(result.get("context", {}).get("slot", 0)),
            )
            if event is not None:
                yield event


class ListingStream:
    """Fans create events out to subscriber callbacks; one upstream socket shared by all."""

    def __init__(self, ws_url: str | None = None, program_id: str | None = None) -> None:
        self._ws_url = ws_url or settings.rpc_ws_url
        self._program_id = program_id or settings.pump_fun_program_id
        self._callbacks: dict[int, ListingCallback] = {}
        self._next_id = 1
        self._stream_task: asyncio.Task[None] | None = None
        self._handler_tasks: set[asyncio.Task[None]] = set()

    def subscribe(self, callback: ListingCallback) -> int:
        subscription_id = self._next_id
        self._next_id += 1
        self._callbacks[subscription_id] = callback
        if self._stream_task is None or self._stream_task.done():
            self._stream_task = asyncio.create_task(self._run_stream())
        return subscription_id

    async def unsubscribe(self, subscription_id: int) -> None:
        self._callbacks.pop(subscription_id, None)
        if self._callbacks:
            return
        task, self._stream_task = self._stream_task, None
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run_stream(self) -> None:
        while True:
            try:
                async for event in stream_create_events(self._ws_url, self._program_id):
                    self._dispatch(event)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Listing stream dropped; reconnecting in %ss", RECONNECT_DELAY_S)
                await asyncio.sleep(RECONNECT_DELAY_S)

    def _dispatch(self, event: NewListingEvent) -> None:
        for callback in list(self._callbacks.values()):
            task = asyncio.create_task(callback(event))
            self._handler_tasks.add(task)
            task.add_done_callback(self._handler_tasks.discard)
