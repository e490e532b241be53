import logging
from pathlib import Path
from typing import Optional

from esdump.core.errors import ConfigurationInvalid, DestinationRejected, SourceUnavailable
from esdump.core.options import TransferType
from esdump.core.records import Batch, FetchResult, WriteResult
from esdump.core.transform import get_encoder
from ._base import Capability, RecordReader, Transport

logger = logging.getLogger('esdump')


class FileTransport(Transport):
    """
    A dump file on local disk. Opened for reading when used as an input and
    created (or truncated) when used as an output; never both.
    """
    name = 'file'

    def __init__(self, path, mode: str = 'r', kind: TransferType = TransferType.DATA,
                 line_format: bool = True):
        if mode not in ('r', 'w'):
            raise ConfigurationInvalid(message=f"unknown file mode {mode}")
        self.path = Path(path)
        self.mode = mode
        self.kind = kind
        self.capabilities = frozenset({Capability.FETCH} if mode == 'r' else {Capability.WRITE})
        self._encoder = get_encoder(line_format)
        self._handle = None
        self._reader: Optional[RecordReader] = None

    @classmethod
    def from_endpoint(cls, endpoint, role, factory, options):
        return cls(
            path=endpoint.location,
            mode='r' if role == 'input' else 'w',
            kind=options.type,
            line_format=options.line_format)

    def describe(self) -> str:
        return str(self.path)

    async def open(self):
        if self._handle is not None:
            return
        try:
            if self.mode == 'r':
                self._handle = self.path.open('r', encoding='utf-8')
                self._reader = RecordReader(self._handle, self.kind, name=str(self.path))
            else:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._handle = self.path.open('w', encoding='utf-8')
                self._handle.write(self._encoder.begin())
        except OSError as e:
            raise SourceUnavailable(message=f"cannot open {self.path}", details=str(e)) from e
        logger.debug(f"Opened {self.path} for {'reading' if self.mode == 'r' else 'writing'}")

    async def close(self):
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            try:
                if self.mode == 'w':
                    handle.write(self._encoder.end())
            finally:
                handle.close()
        except OSError as e:
            raise DestinationRejected(message=f"cannot finish writing {self.path}", details=str(e)) from e

    async def fetch(self, limit, token=None, skip=0, query=None, lease=None) -> FetchResult:
        await self.open()
        return self._reader.read(limit)

    async def fetch_structure(self, kind: TransferType) -> FetchResult:
        await self.open()
        return self._reader.read_all()

    async def write(self, records: Batch) -> WriteResult:
        await self.open()
        try:
            self._handle.write(self._encoder.encode(records))
            # A crash leaves every acknowledged batch on disk
            self._handle.flush()
        except OSError as e:
            raise DestinationRejected(message=f"cannot write to {self.path}", details=str(e)) from e
        return WriteResult(accepted=len(records))
