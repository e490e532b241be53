import asyncio
from unittest.mock import patch

import pytest

from esdump.config import Config
from esdump.core.factory import DumpFactory
from tests.unit.mocks.MockElastic import MockElastic

ELASTIC_URL = "http://localhost:9200"
SEED_SIZE = 500


def seed_docs(count=SEED_SIZE):
    return {str(i): {'key': f"key{i}", '_uuid': str(i)} for i in range(count)}


def read_lines(path):
    with open(path, encoding='utf-8') as f:
        return f.read().splitlines()


@pytest.fixture
def elastic():
    es = MockElastic()
    es.indices.add_index(
        'source_index',
        settings={'analysis': {'analyzer': {'content': {'type': 'custom', 'tokenizer': 'whitespace'}}}},
        mappings={'properties': {'key': {'type': 'keyword'}, '_uuid': {'type': 'keyword'}}},
        aliases={'current': {}})
    es.add_docs('source_index', seed_docs())
    es.indices.templates['logs'] = {
        'index_patterns': ['logs-*'],
        'settings': {'index': {'number_of_shards': '1', 'uuid': 'abc', 'refresh_interval': '5s'}},
    }
    return es


@pytest.fixture
def config():
    return Config(max_sockets=4, bulk_size=50, fetch_attempts=2, retry_backoff=0)


@pytest.fixture
def factory(elastic, config):
    with patch('esdump.core.factory.AsyncElasticsearch') as es_class:
        es_class.return_value = elastic
        yield DumpFactory(config)


@pytest.fixture
def ceiling():
    return asyncio.Semaphore(4)
