import re
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from esdump.core.errors import ConfigurationInvalid

LEASE_PATTERN = re.compile(r'^\d+(nanos|micros|ms|s|m|h|d)$')


class TransferType(str, Enum):
    DATA = 'data'
    MAPPING = 'mapping'
    ANALYZER = 'analyzer'
    TEMPLATE = 'template'
    ALIAS = 'alias'

    @property
    def structural(self) -> bool:
        return self is not TransferType.DATA


class TransferOptions(BaseModel):
    # Fixed for the lifetime of one session
    model_config = ConfigDict(frozen=True)

    limit: int = Field(default=100, gt=0)
    offset: int = Field(default=0, ge=0)
    type: TransferType = TransferType.DATA
    filter_query: Optional[Dict[str, Any]] = None
    source_only: bool = False
    line_format: bool = True
    delete: bool = False
    cursor_lease: str = "10m"
    all: bool = False
    concurrency: int = Field(default=1, gt=0)
    exclude: List[str] = Field(default_factory=list)

    @field_validator('filter_query')
    @classmethod
    def unwrap_query(cls, value):
        # Accept a full search body ({"query": {...}}) as well as a bare clause
        if value and 'query' in value:
            extra = sorted(set(value) - {'query'})
            if extra:
                raise ValueError(f"only the query of a search body is used; remove {', '.join(extra)}")
            return value['query'] or None
        return value or None

    @field_validator('cursor_lease')
    @classmethod
    def check_lease(cls, value):
        if not LEASE_PATTERN.match(value):
            raise ValueError(f"'{value}' is not a time value such as 30s or 10m")
        return value

    @model_validator(mode='after')
    def check_type_options(self):
        if self.type.structural:
            if self.filter_query is not None:
                raise ValueError(f"a filter query only applies to data transfers, not {self.type.value}")
            if self.delete:
                raise ValueError(f"delete only applies to data transfers, not {self.type.value}")
        return self

    @classmethod
    def build(cls, **kwargs) -> "TransferOptions":
        """Validate keyword options, reporting problems as ConfigurationInvalid"""
        try:
            return cls(**kwargs)
        except ValidationError as e:
            raise ConfigurationInvalid(
                message='invalid transfer options',
                details=str(e)) from e
