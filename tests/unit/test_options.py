import pytest

from esdump.core.errors import ConfigurationInvalid
from esdump.core.options import TransferOptions, TransferType


def test_defaults():
    options = TransferOptions()
    assert options.limit == 100
    assert options.offset == 0
    assert options.type is TransferType.DATA
    assert options.filter_query is None
    assert options.line_format
    assert options.cursor_lease == "10m"
    assert options.concurrency == 1


def test_search_body_is_unwrapped():
    options = TransferOptions(filter_query={'query': {'term': {'key': 'key1'}}})
    assert options.filter_query == {'term': {'key': 'key1'}}

    assert TransferOptions(filter_query={'range': {'_uuid': {'lte': '2'}}}).filter_query == \
        {'range': {'_uuid': {'lte': '2'}}}
    assert TransferOptions(filter_query={}).filter_query is None


def test_options_are_frozen():
    options = TransferOptions()
    with pytest.raises(Exception):
        options.limit = 5


@pytest.mark.parametrize("kwargs", [
    {'limit': 0},
    {'offset': -1},
    {'type': 'settings'},
    {'cursor_lease': 'ten minutes'},
    {'concurrency': 0},
    {'type': 'mapping', 'filter_query': {'match_all': {}}},
    {'type': 'analyzer', 'delete': True},
    {'filter_query': {'query': {'term': {'key': 'key1'}}, '_source': ['key']}},
])
def test_invalid_options(kwargs):
    with pytest.raises(ConfigurationInvalid) as e:
        TransferOptions.build(**kwargs)
    assert e.value.message == 'invalid transfer options'
    assert e.value.details


def test_structural_types():
    assert not TransferType.DATA.structural
    assert all(t.structural for t in TransferType if t is not TransferType.DATA)
    assert TransferOptions.build(type='alias').type is TransferType.ALIAS


def test_search_body_extra_keys_are_named():
    with pytest.raises(ConfigurationInvalid) as e:
        TransferOptions.build(filter_query={'query': {'match_all': {}}, 'size': 5, '_source': ['key']})
    assert '_source, size' in e.value.details
