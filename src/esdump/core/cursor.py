"""
Pagination over any input transport.

The cursor manager hides how a transport pages (cursor tokens, file
positions, an unbounded stream) behind ``next_batch()`` and applies the
transfer offset in one of three ways:

1. offset 0: native pagination from the first record;
2. the transport can skip natively: the first request skips ``offset``
   records, later requests follow the cursor;
3. otherwise: whole batches are fetched and dropped until ``offset`` records
   have gone by, and the rest of the straddling batch is returned.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List

from esdump.core.errors import CursorExpired, SourceUnavailable
from esdump.core.options import TransferOptions
from esdump.core.records import Batch, FetchResult, RecordFailure
from esdump.core.transports import Capability, Transport

logger = logging.getLogger('esdump')


@dataclass
class CursorState:
    token: Any = None
    records_delivered: int = 0
    records_skipped: int = 0
    exhausted: bool = False


class CursorManager:

    def __init__(self, transport: Transport, options: TransferOptions,
                 fetch_attempts: int = 3, retry_backoff: float = 1.0):
        self.transport = transport
        self.options = options
        self.fetch_attempts = fetch_attempts
        self.retry_backoff = retry_backoff
        self.state = CursorState()
        self.failures: List[RecordFailure] = []
        self._offset_applied = options.offset == 0

    @property
    def exhausted(self) -> bool:
        return self.state.exhausted

    async def next_batch(self) -> Batch:
        """Return the next batch, or an empty list once the source is exhausted"""
        if self.state.exhausted:
            return []
        if self.options.type.structural:
            result = await self._retry(self.transport.fetch_structure, self.options.type)
            self.state.exhausted = True
            return self._deliver(result)

        while not self.state.exhausted:
            if self._offset_applied:
                batch = self._deliver(await self._fetch())
            elif self.transport.supports(Capability.SKIP):
                batch = self._deliver(await self._fetch(skip=self.options.offset))
                self.state.records_skipped = self.options.offset
                self._offset_applied = True
            else:
                batch = self._discard(await self._fetch())
            if batch:
                return batch
        return []

    def _discard(self, result: FetchResult) -> Batch:
        self.failures.extend(result.failures)
        self.state.token = result.token
        self.state.exhausted = result.exhausted
        remaining = self.options.offset - self.state.records_skipped
        if len(result.records) <= remaining:
            self.state.records_skipped += len(result.records)
            logger.debug(f"Discarded {len(result.records)} records, "
                         f"{self.state.records_skipped}/{self.options.offset} skipped")
            return []
        self.state.records_skipped = self.options.offset
        self._offset_applied = True
        batch = result.records[remaining:]
        self.state.records_delivered += len(batch)
        return batch

    def _deliver(self, result: FetchResult) -> Batch:
        self.failures.extend(result.failures)
        self.state.token = result.token
        self.state.exhausted = result.exhausted
        self.state.records_delivered += len(result.records)
        return result.records

    async def _fetch(self, skip: int = 0) -> FetchResult:
        try:
            return await self._retry(
                self.transport.fetch,
                limit=self.options.limit,
                token=self.state.token,
                skip=skip,
                query=self.options.filter_query,
                lease=self.options.cursor_lease)
        except CursorExpired as e:
            if not self.transport.supports(Capability.SKIP):
                raise SourceUnavailable(message=e.message, details=e.details) from e
            # Records already written are rewritten idempotently, so resume
            # from the last delivered position rather than from zero
            position = self.state.records_skipped + self.state.records_delivered
            logger.warning(f"Cursor on {self.transport.describe()} expired, resuming at record {position}")
            self.state.token = None
            return await self._retry(
                self.transport.fetch,
                limit=self.options.limit,
                token=None,
                skip=position,
                query=self.options.filter_query,
                lease=self.options.cursor_lease)

    async def _retry(self, method, *args, **kwargs) -> FetchResult:
        attempt = 1
        while True:
            try:
                return await method(*args, **kwargs)
            except SourceUnavailable as e:
                if attempt >= self.fetch_attempts:
                    logger.error(f"Giving up on {self.transport.describe()} after {attempt} attempts")
                    raise
                delay = self.retry_backoff * 2 ** (attempt - 1)
                logger.warning(f"{e.message}, retrying in {delay:g}s ({attempt}/{self.fetch_attempts})")
                await asyncio.sleep(delay)
                attempt += 1
