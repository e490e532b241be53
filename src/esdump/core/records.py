from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from esdump.core.errors import DumpException, MalformedRecord
from esdump.core.options import TransferType


class Record(BaseModel):
    # One transferable unit: a document, or a structural definition of a container
    id: Optional[str] = None
    index: Optional[str] = None
    doc_type: Optional[str] = None
    source: Dict[str, Any] = Field(default_factory=dict)
    kind: TransferType = TransferType.DATA
    # Set by the transform; only changes how the record is serialized
    source_only: bool = False

    @classmethod
    def from_hit(cls, hit: Dict[str, Any]) -> "Record":
        return cls(
            id=hit.get('_id'),
            index=hit.get('_index'),
            doc_type=hit.get('_type'),
            source=hit.get('_source') or {})

    @classmethod
    def from_dict(cls, obj: Any, kind: TransferType) -> List["Record"]:
        """Decode one serialized unit, raising MalformedRecord if it is not usable"""
        if not isinstance(obj, dict):
            raise MalformedRecord(
                message='expected a JSON object',
                details=f"got {type(obj).__name__}")
        if kind.structural:
            records = []
            for container, body in obj.items():
                if not isinstance(body, dict):
                    raise MalformedRecord(
                        message=f"definition of {container} is not an object",
                        details=str(body)[:200])
                records.append(cls(index=container, source=body, kind=kind))
            return records
        if '_source' not in obj:
            # A source-only dump: the whole object is the payload
            return [cls(source=obj)]
        if not isinstance(obj['_source'], dict):
            raise MalformedRecord(
                message='_source is not an object',
                details=str(obj.get('_id')))
        return [cls.from_hit(obj)]

    def to_dict(self) -> Dict[str, Any]:
        if self.kind.structural:
            return {self.index: self.source}
        if self.source_only:
            return self.source
        envelope = {'_index': self.index}
        if self.doc_type:
            envelope['_type'] = self.doc_type
        envelope['_id'] = self.id
        envelope['_source'] = self.source
        return envelope


Batch = List[Record]


@dataclass
class RecordFailure:
    id: Optional[str]
    index: Optional[str]
    error: DumpException

    @property
    def reason(self) -> str:
        if self.error.details:
            return f"{self.error.message}: {self.error.details}"
        return self.error.message


@dataclass
class FetchResult:
    records: Batch = field(default_factory=list)
    # Opaque handle for the next fetch; None when the source does not paginate
    token: Any = None
    exhausted: bool = False
    failures: List[RecordFailure] = field(default_factory=list)


@dataclass
class WriteResult:
    accepted: int = 0
    failures: List[RecordFailure] = field(default_factory=list)

    def merge(self, other: "WriteResult"):
        self.accepted += other.accepted
        self.failures.extend(other.failures)

