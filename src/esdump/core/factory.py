import asyncio
import logging
import ssl
from typing import Dict, Optional, Tuple

import pluggy
from elasticsearch import AsyncElasticsearch

from esdump.config import Config as DumpConfig
from esdump.core.fanout import FanOutController
from esdump.core.options import TransferOptions
from esdump.core.session import DumpSession
from esdump.core.transports import Transport, get_transport
from esdump.utils import Endpoint

logger = logging.getLogger('esdump')


class DumpFactory:
    """
    Builds clients, transports and sessions from one Config. Every
    Elasticsearch transport it builds shares ``connection_ceiling``, so the
    number of in-flight requests stays below ``max_sockets`` however many
    sessions run at once.
    """

    def __init__(self, config: DumpConfig, plugin_manager: Optional[pluggy.PluginManager] = None):
        self.config = config
        if plugin_manager is None:
            from esdump.core import get_plugin_manager
            plugin_manager = get_plugin_manager()
        self.plugin_manager = plugin_manager
        self.connection_ceiling = asyncio.Semaphore(config.max_sockets)
        self._clients: Dict[Tuple[str, Optional[str]], AsyncElasticsearch] = {}

    def build_client(self, endpoint: Endpoint) -> AsyncElasticsearch:
        key = (endpoint.location, endpoint.username)
        if key in self._clients:
            return self._clients[key]

        username = endpoint.username or self.config.elastic_username
        password = endpoint.password if endpoint.username else self.config.elastic_password
        kwargs = {
            'hosts': [endpoint.location],
            'request_timeout': self.config.request_timeout,
            'max_retries': self.config.max_retries,
            'retry_on_timeout': True,
            'connections_per_node': self.config.max_sockets,
        }
        if username:
            logger.debug(f"Authenticating as user {username} to host:{endpoint.location}")
            kwargs['basic_auth'] = (username, password)
        if endpoint.location.startswith("https"):
            # Verify ssl connects disable for dev mode
            if not self.config.elastic_ca_verify:
                kwargs['verify_certs'] = False
            elif self.config.elastic_ca_path:
                kwargs['ssl_context'] = ssl.create_default_context(cafile=self.config.elastic_ca_path)

        logger.debug(f"Connecting to elasticsearch host: {endpoint.location}")
        client = AsyncElasticsearch(**kwargs)
        self._clients[key] = client
        return client

    def build_transport(self, endpoint: Endpoint, role: str, options: TransferOptions) -> Transport:
        transport_class = get_transport(self.plugin_manager.hook, endpoint.kind)
        return transport_class.from_endpoint(endpoint, role, self, options)

    def build_session(self, input: Endpoint, output, options: TransferOptions,
                      manage_output: bool = True, container: Optional[str] = None) -> DumpSession:
        if isinstance(output, Endpoint):
            output = self.build_transport(output, 'output', options)
        return DumpSession(
            input=self.build_transport(input, 'input', options),
            output=output,
            options=options,
            fetch_attempts=self.config.fetch_attempts,
            retry_backoff=self.config.retry_backoff,
            manage_output=manage_output,
            container=container or input.index)

    def build_fanout(self, input: Endpoint, output: Endpoint, options: TransferOptions) -> FanOutController:
        exclude = [output.index] if output.index else []
        return FanOutController(
            factory=self,
            input=input,
            output=self.build_transport(output, 'output', options),
            options=options,
            exclude=exclude)

    async def close(self):
        for client in self._clients.values():
            await client.close()
        self._clients = {}
