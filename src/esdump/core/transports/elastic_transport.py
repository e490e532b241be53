"""
Transport backed by an Elasticsearch cluster.

Documents are paged with a point in time (PIT) and ``search_after`` so that
the first page can skip natively (``from``) while every later page follows a
cursor. Skips that would pass the result window (``max_page_size``) page
forward with ``search_after`` instead. Writes and deletes go through the bulk API; every request holds the
connection ceiling shared by all transports built by the same factory.
"""
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from elasticsearch import ApiError, NotFoundError
from elasticsearch import ConnectionError as ElasticConnectionError
from elasticsearch import ConnectionTimeout

from esdump.core.errors import CursorExpired, DestinationRejected, DumpException, SourceUnavailable
from esdump.core.options import TransferType
from esdump.core.records import Batch, FetchResult, Record, RecordFailure, WriteResult
from ._base import Capability, Transport

logger = logging.getLogger('esdump')

RETRYABLE_STATUS = (429, 502, 503, 504)


def _body(response):
    # ObjectApiResponse and HeadApiResponse keep the decoded payload in .body
    return getattr(response, 'body', response)


class ElasticTransport(Transport):
    name = 'elasticsearch'
    capabilities = frozenset(Capability)

    def __init__(self, es, connection_ceiling: asyncio.Semaphore, index: Optional[str] = None,
                 doc_type: Optional[str] = None, bulk_size: int = 500, max_page_size: int = 10000,
                 url: str = ""):
        self.es = es
        self.index = index
        self.doc_type = doc_type
        self.bulk_size = bulk_size
        self.max_page_size = max_page_size
        self.url = url
        self._ceiling = connection_ceiling
        self._pit_id = None
        if doc_type:
            logger.debug(f"Type {doc_type} is kept in records only; typeless clusters do not accept it")

    @classmethod
    def from_endpoint(cls, endpoint, role, factory, options):
        return cls(
            es=factory.build_client(endpoint),
            connection_ceiling=factory.connection_ceiling,
            index=endpoint.index,
            doc_type=endpoint.doc_type,
            bulk_size=factory.config.bulk_size,
            max_page_size=factory.config.max_page_size,
            url=endpoint.location)

    def describe(self) -> str:
        return "/".join(p for p in (self.url, self.index, self.doc_type) if p)

    async def _call(self, method, **kwargs):
        async with self._ceiling:
            try:
                return _body(await method(**kwargs))
            except (ElasticConnectionError, ConnectionTimeout) as e:
                raise SourceUnavailable(
                    message=f"{self.describe()} is unreachable",
                    details=str(e)) from e
            except ApiError as e:
                if e.status_code in RETRYABLE_STATUS:
                    raise SourceUnavailable(
                        message=f"{self.describe()} answered {e.status_code}",
                        details=str(e)) from e
                raise DumpException(
                    message=f"{self.describe()} refused the request",
                    details=str(e)) from e

    async def close(self):
        await self._close_pit()

    async def _close_pit(self):
        if self._pit_id is None:
            return
        pit_id, self._pit_id = self._pit_id, None
        try:
            await self.es.close_point_in_time(id=pit_id)
        except (ApiError, ElasticConnectionError, ConnectionTimeout) as e:
            # An expired PIT is already gone
            logger.debug(f"Could not close point in time on {self.describe()}: {e}")

    async def fetch(self, limit: int, token=None, skip: int = 0,
                    query: Optional[Dict[str, Any]] = None, lease: Optional[str] = "10m") -> FetchResult:
        size = min(limit, self.max_page_size)
        request = {
            'size': size,
            'sort': ['_shard_doc'],
            'query': query or {'match_all': {}},
            'track_total_hits': False,
        }
        if token is None:
            await self._close_pit()
            response = await self._call(self.es.open_point_in_time,
                                        index=self.index or '_all', keep_alive=lease)
            self._pit_id = response['id']
            if skip and skip + size > self.max_page_size:
                # from + size may not pass the result window
                search_after = await self._seek(skip, request, lease)
                if search_after is None:
                    return FetchResult(exhausted=True)
                request['search_after'] = search_after
            elif skip:
                request['from_'] = skip
        else:
            self._pit_id = token['pit_id']
            request['search_after'] = token['search_after']
        request['pit'] = {'id': self._pit_id, 'keep_alive': lease}

        logger.debug(f"Fetching {size} records from {self.describe()} (skip={skip}, resumed={token is not None})")
        try:
            response = await self._call(self.es.search, **request)
        except DumpException as e:
            if token is not None and isinstance(e.__cause__, NotFoundError):
                raise CursorExpired(
                    message=f"cursor on {self.describe()} expired",
                    details=e.details) from e
            raise

        hits = response['hits']['hits']
        self._pit_id = response.get('pit_id', self._pit_id)
        next_token = None
        if hits:
            next_token = {'pit_id': self._pit_id, 'search_after': hits[-1]['sort']}
        return FetchResult(
            records=[Record.from_hit(hit) for hit in hits],
            token=next_token,
            exhausted=len(hits) < size)

    async def _seek(self, skip: int, request: Dict[str, Any], lease: Optional[str]):
        """Page past ``skip`` hits; returns the sort values of the last one, or None if the source is shorter"""
        remaining = skip
        search_after = None
        while remaining:
            page = {**request, 'size': min(remaining, self.max_page_size),
                    'pit': {'id': self._pit_id, 'keep_alive': lease}}
            if search_after is not None:
                page['search_after'] = search_after
            response = await self._call(self.es.search, **page)
            hits = response['hits']['hits']
            self._pit_id = response.get('pit_id', self._pit_id)
            remaining -= len(hits)
            if len(hits) < page['size']:
                return None
            search_after = hits[-1]['sort']
        logger.debug(f"Skipped {skip} records on {self.describe()} with search_after")
        return search_after

    async def fetch_structure(self, kind: TransferType) -> FetchResult:
        if kind is TransferType.TEMPLATE:
            kwargs = {'name': self.index} if self.index else {}
            response = await self._call(self.es.indices.get_template, **kwargs)
        else:
            method = {
                TransferType.MAPPING: self.es.indices.get_mapping,
                TransferType.ANALYZER: self.es.indices.get_settings,
                TransferType.ALIAS: self.es.indices.get_alias,
            }[kind]
            response = await self._call(method, index=self.index or '_all')
        return FetchResult(
            records=[Record(index=name, source=body, kind=kind) for name, body in response.items()],
            exhausted=True)

    def _chunks(self, records: Batch) -> List[Batch]:
        return [records[i:i + self.bulk_size] for i in range(0, len(records), self.bulk_size)]

    async def write(self, records: Batch) -> WriteResult:
        if not records:
            return WriteResult()
        if records[0].kind.structural:
            return await self._write_structure(records)

        result = WriteResult()
        for chunk_result in await asyncio.gather(*(self._bulk_index(c) for c in self._chunks(records))):
            result.merge(chunk_result)
        return result

    async def delete(self, records: Batch) -> WriteResult:
        result = WriteResult()
        records = [r for r in records if r.id is not None]
        for chunk_result in await asyncio.gather(*(self._bulk_delete(c) for c in self._chunks(records))):
            result.merge(chunk_result)
        return result

    async def _bulk_index(self, chunk: Batch) -> WriteResult:
        result = WriteResult()
        operations = []
        sent = []
        for record in chunk:
            target = self.index or record.index
            if target is None:
                result.failures.append(RecordFailure(
                    id=record.id, index=None,
                    error=DestinationRejected(message='record has no destination index')))
                continue
            action = {'_index': target}
            if record.id is not None:
                action['_id'] = record.id
            operations.append({'index': action})
            operations.append(record.source)
            sent.append(record)
        if sent:
            response = await self._call(self.es.bulk, operations=operations)
            result.merge(self._bulk_result(sent, response))
        return result

    async def _bulk_delete(self, chunk: Batch) -> WriteResult:
        operations = [{'delete': {'_index': record.index or self.index, '_id': record.id}}
                      for record in chunk]
        response = await self._call(self.es.bulk, operations=operations)
        return self._bulk_result(chunk, response)

    def _bulk_result(self, sent: Batch, response: Dict[str, Any]) -> WriteResult:
        result = WriteResult()
        for record, item in zip(sent, response.get('items', [])):
            op = next(iter(item.values()))
            status = op.get('status', 500)
            if 'error' in op or status >= 300:
                error = DestinationRejected(
                    message=f"{op.get('_index')}/{op.get('_id')} rejected with status {status}",
                    details=json.dumps(op.get('error')))
                logger.warning(f"{error.message}: {error.details}")
                result.failures.append(RecordFailure(id=record.id, index=op.get('_index'), error=error))
            else:
                result.accepted += 1
        return result

    async def _write_structure(self, records: Batch) -> WriteResult:
        result = WriteResult()
        for record in records:
            target = self.index or record.index
            try:
                await self._apply_structure(record, target)
            except SourceUnavailable:
                raise
            except DumpException as e:
                error = DestinationRejected(
                    message=f"{record.kind.value} for {target} rejected",
                    details=e.details)
                logger.warning(f"{error.message}: {error.details}")
                result.failures.append(RecordFailure(id=None, index=target, error=error))
            else:
                logger.info(f"Applied {record.kind.value} to {target}")
                result.accepted += 1
        return result

    async def _apply_structure(self, record: Record, target: str):
        kind = record.kind
        if kind is TransferType.TEMPLATE:
            await self._call(self.es.indices.put_template, name=target, body=record.source)
            return
        if kind is TransferType.ALIAS:
            actions = [{'add': {**(props or {}), 'index': target, 'alias': alias}}
                       for alias, props in record.source['aliases'].items()]
            if actions:
                await self._call(self.es.indices.update_aliases, actions=actions)
            return

        if not await self._call(self.es.indices.exists, index=target):
            await self._call(self.es.indices.create, index=target, body=record.source)
            return
        if kind is TransferType.MAPPING:
            await self._call(self.es.indices.put_mapping, index=target, body=record.source['mappings'])
        else:
            # Analysis settings can only change on a closed index
            await self._call(self.es.indices.close, index=target)
            try:
                await self._call(self.es.indices.put_settings, index=target, body=record.source['settings'])
            finally:
                await self._call(self.es.indices.open, index=target)

    async def list_containers(self) -> List[str]:
        response = await self._call(self.es.cat.indices, format='json')
        return sorted(row['index'] for row in response)
