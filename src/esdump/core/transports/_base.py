from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, TextIO

from esdump.core.errors import MalformedRecord
from esdump.core.options import TransferType
from esdump.core.records import Batch, FetchResult, Record, RecordFailure, WriteResult

logger = logging.getLogger('esdump')


class Capability(str, Enum):
    FETCH = 'fetch'
    WRITE = 'write'
    DELETE = 'delete'
    # Native "skip N" on the first read
    SKIP = 'skip'
    # Source-side evaluation of a filter query
    FILTER = 'filter'
    # Enumerate containers for an "all indices" transfer
    DISCOVER = 'discover'


class RecordReader:
    """
    Reads serialized records from a text stream, either one JSON value per
    line or a single JSON array. The format is detected from the first
    non-blank character.
    """

    def __init__(self, stream: TextIO, kind: TransferType, name: str = "stream"):
        self._stream = stream
        self._kind = kind
        self._name = name
        self._items = None
        self._format_decided = False
        self.line_number = 0
        self.exhausted = False

    def read(self, limit: int) -> FetchResult:
        result = FetchResult()
        while len(result.records) < limit and not self.exhausted:
            item = self._next_item(result)
            if item is None:
                continue
            try:
                result.records.extend(Record.from_dict(item, self._kind))
            except MalformedRecord as e:
                self._skip(result, e)
        result.exhausted = self.exhausted
        result.token = self.line_number
        return result

    def read_all(self) -> FetchResult:
        result = FetchResult(exhausted=True)
        while not self.exhausted:
            page = self.read(1000)
            result.records.extend(page.records)
            result.failures.extend(page.failures)
        return result

    def _next_item(self, result: FetchResult):
        if self._items is not None:
            try:
                self.line_number += 1
                return next(self._items)
            except StopIteration:
                self.exhausted = True
                return None

        line = self._stream.readline()
        if not line:
            self.exhausted = True
            return None
        self.line_number += 1
        line = line.strip()
        if not line:
            return None
        if not self._format_decided:
            self._format_decided = True
            if line.startswith('['):
                return self._start_array(line, result)
        try:
            return json.loads(line)
        except json.JSONDecodeError as e:
            self._skip(result, MalformedRecord(
                message=f"{self._name} line {self.line_number} is not valid JSON",
                details=str(e)))
            return None

    def _start_array(self, first_line: str, result: FetchResult):
        try:
            items = json.loads(first_line + self._stream.read())
        except json.JSONDecodeError as e:
            self.exhausted = True
            self._skip(result, MalformedRecord(
                message=f"{self._name} is not a valid JSON array",
                details=str(e)))
            return None
        self.line_number = 0
        self._items = iter(items)
        return self._next_item(result)

    def _skip(self, result: FetchResult, error: MalformedRecord):
        logger.warning(f"Skipping record: {error.message} ({error.details})")
        result.failures.append(RecordFailure(id=None, index=None, error=error))


class Transport(ABC):
    name: str = ""
    capabilities: FrozenSet[Capability] = frozenset()

    @classmethod
    @abstractmethod
    def from_endpoint(cls, endpoint, role: str, factory, options) -> "Transport":
        """Build the transport for one side (``input`` or ``output``) of a transfer"""
        ...

    def supports(self, *capabilities: Capability) -> bool:
        return all(c in self.capabilities for c in capabilities)

    def describe(self) -> str:
        return self.name

    async def open(self):
        pass

    async def close(self):
        pass

    async def fetch(self, limit: int, token=None, skip: int = 0,
                    query: Optional[Dict[str, Any]] = None, lease: Optional[str] = None) -> FetchResult:
        raise NotImplementedError(f"{self.name} transport cannot fetch")

    async def fetch_structure(self, kind: TransferType) -> FetchResult:
        raise NotImplementedError(f"{self.name} transport cannot fetch {kind.value}")

    async def write(self, records: Batch) -> WriteResult:
        raise NotImplementedError(f"{self.name} transport cannot write")

    async def delete(self, records: Batch) -> WriteResult:
        raise NotImplementedError(f"{self.name} transport cannot delete")

    async def list_containers(self) -> List[str]:
        raise NotImplementedError(f"{self.name} transport cannot list containers")
