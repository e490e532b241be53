"""
Record transforms applied between fetch and write, and the encoders that
serialize transformed records for files and streams.
"""
import json
from typing import Callable, Dict, List

from esdump.core.options import TransferOptions, TransferType
from esdump.core.records import Record

# Settings that describe one physical index and cannot be copied
INDEX_BOOKKEEPING = ('uuid', 'creation_date', 'provided_name')


def transform_document(record: Record, options: TransferOptions) -> Record:
    return record.model_copy(update={'source_only': options.source_only})


def transform_mapping(record: Record, options: TransferOptions) -> Record:
    mappings = record.source.get('mappings', record.source)
    return record.model_copy(update={'source': {'mappings': mappings}})


def transform_analyzer(record: Record, options: TransferOptions) -> Record:
    settings = record.source.get('settings', record.source)
    # get_settings nests everything under "index"; a reshaped unit does not
    index_settings = settings.get('index', settings)
    analysis = index_settings.get('analysis', {})
    return record.model_copy(update={'source': {'settings': {'analysis': analysis}}})


def transform_template(record: Record, options: TransferOptions) -> Record:
    template = {k: v for k, v in record.source.items() if k != 'settings'}
    if 'settings' in record.source:
        settings = record.source['settings'].get('index', record.source['settings'])
        template['settings'] = {k: v for k, v in settings.items() if k not in INDEX_BOOKKEEPING}
        version = template['settings'].get('version')
        if isinstance(version, dict):
            version = {k: v for k, v in version.items() if k != 'created'}
            if version:
                template['settings']['version'] = version
            else:
                del template['settings']['version']
    return record.model_copy(update={'source': template})


def transform_alias(record: Record, options: TransferOptions) -> Record:
    aliases = record.source.get('aliases', record.source)
    return record.model_copy(update={'source': {'aliases': aliases}})


TRANSFORMS: Dict[TransferType, Callable[[Record, TransferOptions], Record]] = {
    TransferType.DATA: transform_document,
    TransferType.MAPPING: transform_mapping,
    TransferType.ANALYZER: transform_analyzer,
    TransferType.TEMPLATE: transform_template,
    TransferType.ALIAS: transform_alias,
}


def transform_batch(records: List[Record], options: TransferOptions) -> List[Record]:
    transform = TRANSFORMS[options.type]
    return [transform(record.model_copy(update={'kind': options.type}), options)
            for record in records]


class LineEncoder:
    """One JSON value per line; every line is newline-terminated"""

    def begin(self) -> str:
        return ""

    def encode(self, records: List[Record]) -> str:
        return "".join(json.dumps(record.to_dict()) + "\n" for record in records)

    def end(self) -> str:
        return ""


class ArrayEncoder:
    """All records of a session inside one JSON array, closed by end()"""

    def __init__(self):
        self._written = 0

    def begin(self) -> str:
        return "["

    def encode(self, records: List[Record]) -> str:
        chunks = []
        for record in records:
            chunks.append(("\n" if self._written == 0 else ",\n") + json.dumps(record.to_dict()))
            self._written += 1
        return "".join(chunks)

    def end(self) -> str:
        return "\n]\n" if self._written else "]\n"


def get_encoder(line_format: bool):
    return LineEncoder() if line_format else ArrayEncoder()
