import os
from unittest import mock

from esdump.config import Config


@mock.patch.dict(os.environ, {
    "ELASTIC_PASSWORD": "ohwhoa",
    "ELASTIC_CA_VERIFY": "False",
    "ESDUMP_MAX_SOCKETS": "3",
    "ESDUMP_RETRY_BACKOFF": "0.5",
})
def test_config_created_from_env_vars():
    cfg = Config.from_env()

    assert cfg.elastic_password == "ohwhoa"
    assert cfg.elastic_ca_verify is False
    assert cfg.max_sockets == 3
    assert cfg.retry_backoff == 0.5


@mock.patch.dict(os.environ, {}, clear=True)
def test_config_defaults():
    cfg = Config.from_env()

    assert cfg == Config()
    assert cfg.elastic_ca_verify is True
    assert cfg.bulk_size == 500
    assert cfg.max_page_size == 10000
