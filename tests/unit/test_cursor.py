import pytest

from esdump.core.cursor import CursorManager
from esdump.core.errors import CursorExpired, SourceUnavailable
from esdump.core.options import TransferOptions, TransferType
from esdump.core.records import FetchResult, Record
from esdump.core.transports import Capability, Transport


class ListTransport(Transport):
    """Pages over an in-memory list; the token is the next position"""
    name = 'list'

    def __init__(self, count, skip=False, errors=()):
        self.records = [Record(id=str(i), index='idx', source={'n': i}) for i in range(count)]
        self.capabilities = frozenset({Capability.FETCH} | ({Capability.SKIP} if skip else set()))
        self.errors = list(errors)
        self.calls = []

    @classmethod
    def from_endpoint(cls, endpoint, role, factory, options):
        raise NotImplementedError

    async def fetch(self, limit, token=None, skip=0, query=None, lease=None):
        self.calls.append({'token': token, 'skip': skip})
        if self.errors:
            raise self.errors.pop(0)
        start = token if token is not None else skip
        page = self.records[start:start + limit]
        return FetchResult(records=page, token=start + len(page), exhausted=len(page) < limit)

    async def fetch_structure(self, kind):
        self.calls.append({'kind': kind})
        return FetchResult(records=[Record(index='idx', source={'mappings': {}}, kind=kind)],
                           exhausted=True)


async def drain(cursor):
    ids = []
    while True:
        batch = await cursor.next_batch()
        if not batch:
            return ids
        ids.append([r.id for r in batch])


def flat(batches):
    return [int(i) for batch in batches for i in batch]


@pytest.mark.asyncio
async def test_native_pagination():
    cursor = CursorManager(ListTransport(10), TransferOptions(limit=4))
    batches = await drain(cursor)
    assert [len(b) for b in batches] == [4, 4, 2]
    assert flat(batches) == list(range(10))
    assert cursor.exhausted
    assert cursor.state.records_delivered == 10


@pytest.mark.asyncio
async def test_native_skip_on_first_fetch_only():
    transport = ListTransport(10, skip=True)
    cursor = CursorManager(transport, TransferOptions(limit=4, offset=5))
    assert flat(await drain(cursor)) == [5, 6, 7, 8, 9]
    assert transport.calls[0] == {'token': None, 'skip': 5}
    assert all(call['skip'] == 0 for call in transport.calls[1:])


@pytest.mark.asyncio
async def test_discard_loop_returns_straddling_batch():
    transport = ListTransport(10)
    cursor = CursorManager(transport, TransferOptions(limit=3, offset=4))
    batches = await drain(cursor)
    assert batches[0] == ['4', '5']
    assert flat(batches) == list(range(4, 10))
    assert cursor.state.records_skipped == 4


@pytest.mark.asyncio
async def test_offset_beyond_source():
    cursor = CursorManager(ListTransport(10), TransferOptions(limit=3, offset=50))
    assert await drain(cursor) == []
    assert cursor.exhausted


@pytest.mark.asyncio
async def test_empty_source():
    cursor = CursorManager(ListTransport(0), TransferOptions())
    assert await cursor.next_batch() == []
    assert cursor.exhausted


@pytest.mark.asyncio
async def test_retries_unavailable_source():
    transport = ListTransport(5, errors=[SourceUnavailable(message='down')])
    cursor = CursorManager(transport, TransferOptions(limit=10), fetch_attempts=3, retry_backoff=0)
    assert flat(await drain(cursor)) == list(range(5))
    assert len(transport.calls) == 2


@pytest.mark.asyncio
async def test_gives_up_after_fetch_attempts():
    errors = [SourceUnavailable(message='down') for _ in range(3)]
    transport = ListTransport(5, errors=errors)
    cursor = CursorManager(transport, TransferOptions(), fetch_attempts=2, retry_backoff=0)
    with pytest.raises(SourceUnavailable):
        await cursor.next_batch()
    assert len(transport.calls) == 2


@pytest.mark.asyncio
async def test_expired_cursor_resumes_from_position():
    transport = ListTransport(10, skip=True)
    cursor = CursorManager(transport, TransferOptions(limit=3, offset=2), retry_backoff=0)
    first = await cursor.next_batch()
    assert [r.id for r in first] == ['2', '3', '4']
    transport.errors.append(CursorExpired(message='expired'))
    second = await cursor.next_batch()
    assert [r.id for r in second] == ['5', '6', '7']
    assert transport.calls[-1] == {'token': None, 'skip': 5}


@pytest.mark.asyncio
async def test_expired_cursor_without_skip_is_unavailable():
    transport = ListTransport(10, errors=[])
    cursor = CursorManager(transport, TransferOptions(limit=3), fetch_attempts=1, retry_backoff=0)
    await cursor.next_batch()
    transport.errors.append(CursorExpired(message='expired'))
    with pytest.raises(SourceUnavailable):
        await cursor.next_batch()


@pytest.mark.asyncio
async def test_structural_fetch_once():
    transport = ListTransport(0)
    cursor = CursorManager(transport, TransferOptions(type=TransferType.MAPPING))
    batch = await cursor.next_batch()
    assert batch[0].kind is TransferType.MAPPING
    assert await cursor.next_batch() == []
    assert len(transport.calls) == 1
