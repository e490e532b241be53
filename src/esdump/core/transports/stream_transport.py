import asyncio
import sys
from typing import Optional, TextIO

from esdump.core.errors import DestinationRejected
from esdump.core.options import TransferType
from esdump.core.records import Batch, FetchResult, WriteResult
from esdump.core.transform import get_encoder
from ._base import Capability, RecordReader, Transport


class StreamTransport(Transport):
    """
    Standard input or output. Reading blocks in a worker thread until the
    stream closes; end of stream means the source is exhausted.
    """
    name = 'stream'

    def __init__(self, reader: Optional[TextIO] = None, writer: Optional[TextIO] = None,
                 kind: TransferType = TransferType.DATA, line_format: bool = True):
        self.capabilities = frozenset(
            ({Capability.FETCH} if reader is not None else set()) |
            ({Capability.WRITE} if writer is not None else set()))
        self._writer = writer
        self._encoder = get_encoder(line_format)
        self._reader = RecordReader(reader, kind, name='stdin') if reader is not None else None
        self._started = False

    @classmethod
    def from_endpoint(cls, endpoint, role, factory, options):
        if role == 'input':
            return cls(reader=sys.stdin, kind=options.type, line_format=options.line_format)
        return cls(writer=sys.stdout, kind=options.type, line_format=options.line_format)

    def describe(self) -> str:
        return 'stdin' if self._reader is not None else 'stdout'

    async def open(self):
        if self._writer is not None and not self._started:
            self._writer.write(self._encoder.begin())
            self._started = True

    async def close(self):
        if self._writer is not None and self._started:
            self._writer.write(self._encoder.end())
            self._writer.flush()
            self._started = False

    async def fetch(self, limit, token=None, skip=0, query=None, lease=None) -> FetchResult:
        return await asyncio.to_thread(self._reader.read, limit)

    async def fetch_structure(self, kind: TransferType) -> FetchResult:
        return await asyncio.to_thread(self._reader.read_all)

    async def write(self, records: Batch) -> WriteResult:
        await self.open()
        try:
            self._writer.write(self._encoder.encode(records))
            self._writer.flush()
        except OSError as e:
            raise DestinationRejected(message="cannot write to stdout", details=str(e)) from e
        return WriteResult(accepted=len(records))
