import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from esdump.core.cursor import CursorManager
from esdump.core.errors import ConfigurationInvalid, DumpException
from esdump.core.options import TransferOptions
from esdump.core.records import Batch, RecordFailure
from esdump.core.transform import transform_batch
from esdump.core.transports import Capability, Transport

logger = logging.getLogger('esdump')


class SessionState(Enum):
    IDLE = 'idle'
    FETCHING_FIRST = 'fetching first batch'
    WRITING = 'writing batch'
    FETCHING_NEXT = 'fetching next batch'
    DELETING = 'deleting source'
    COMPLETED = 'completed'
    FAILED = 'failed'


@dataclass
class TransferCounters:
    total_read: int = 0
    total_written: int = 0
    total_deleted: int = 0

    def add(self, other: "TransferCounters"):
        self.total_read += other.total_read
        self.total_written += other.total_written
        self.total_deleted += other.total_deleted


@dataclass
class DumpResult:
    counters: TransferCounters
    error: Optional[Exception] = None
    failures: List[RecordFailure] = field(default_factory=list)
    container: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def check_transports(input: Transport, output: Transport, options: TransferOptions):
    """Reject transport/option combinations before any I/O happens"""
    if not input.supports(Capability.FETCH):
        raise ConfigurationInvalid(message=f"{input.describe()} cannot be used as an input")
    if not output.supports(Capability.WRITE):
        raise ConfigurationInvalid(message=f"{output.describe()} cannot be used as an output")
    if options.filter_query is not None and not input.supports(Capability.FILTER):
        raise ConfigurationInvalid(
            message=f"{input.describe()} cannot evaluate a filter query")
    if options.delete and not input.supports(Capability.DELETE):
        raise ConfigurationInvalid(
            message=f"{input.describe()} does not support deleting transferred records")
    if options.offset and not input.supports(Capability.SKIP):
        logger.info(f"{input.describe()} cannot skip natively; the first "
                    f"{options.offset} records will be read and discarded")


class DumpSession:
    """
    Moves every record of one input to one output:
    fetch a batch, transform it, write it, count it, and repeat until the
    input is exhausted. With ``delete`` set, the records whose writes were
    accepted are removed from the input once every batch has been written.
    """

    def __init__(self, input: Transport, output: Transport, options: TransferOptions,
                 fetch_attempts: int = 3, retry_backoff: float = 1.0, manage_output: bool = True,
                 container: Optional[str] = None):
        check_transports(input, output, options)
        self.input = input
        self.output = output
        self.options = options
        self.manage_output = manage_output
        self.container = container
        self.cursor = CursorManager(input, options, fetch_attempts=fetch_attempts,
                                    retry_backoff=retry_backoff)
        self.counters = TransferCounters()
        self.failures: List[RecordFailure] = []
        self.state = SessionState.IDLE
        self._pending_delete: Batch = []

    async def run(self, callback: Optional[Callable] = None) -> DumpResult:
        error = None
        try:
            await self._transfer()
        except DumpException as e:
            self.state = SessionState.FAILED
            error = e
            logger.error(f"Transfer from {self.input.describe()} failed: {e.message} ({e.details})")
        except Exception as e:
            self.state = SessionState.FAILED
            self._finish(e, callback)
            raise
        return self._finish(error, callback)

    def _finish(self, error, callback) -> DumpResult:
        self.failures = self.cursor.failures + self.failures
        logger.info(f"{self.input.describe()} -> {self.output.describe()}: "
                    f"read {self.counters.total_read}, wrote {self.counters.total_written}, "
                    f"deleted {self.counters.total_deleted}, {len(self.failures)} record failures")
        if callback is not None:
            callback(error, self.counters)
        return DumpResult(
            counters=self.counters,
            error=error,
            failures=self.failures,
            container=self.container)

    async def _transfer(self):
        self.state = SessionState.FETCHING_FIRST
        await self.input.open()
        try:
            if self.manage_output:
                await self.output.open()
            try:
                await self._loop()
            finally:
                if self.manage_output:
                    await self.output.close()
            if self._pending_delete:
                self.state = SessionState.DELETING
                result = await self.input.delete(self._pending_delete)
                self.counters.total_deleted += result.accepted
                self.failures.extend(result.failures)
                logger.info(f"Deleted {result.accepted} records from {self.input.describe()}")
        finally:
            await self.input.close()
        self.state = SessionState.COMPLETED

    async def _loop(self):
        while True:
            batch = await self.cursor.next_batch()
            if not batch:
                return
            self.state = SessionState.WRITING
            result = await self.output.write(transform_batch(batch, self.options))
            self.counters.total_read += len(batch)
            self.counters.total_written += result.accepted
            self.failures.extend(result.failures)
            logger.info(f"Sent {len(batch)} records to {self.output.describe()}, "
                        f"{self.counters.total_written} written so far")
            if self.options.delete:
                rejected = {f.id for f in result.failures}
                self._pending_delete.extend(
                    r for r in batch if r.id is not None and r.id not in rejected)
            self.state = SessionState.FETCHING_NEXT