import logging
from typing import Dict, Type

import pluggy

from esdump.core.errors import TransportNotFoundException
from ._base import Capability, RecordReader, Transport
from .elastic_transport import ElasticTransport
from .file_transport import FileTransport
from .stream_transport import StreamTransport

logger = logging.getLogger('esdump')

hookimpl = pluggy.HookimplMarker("esdump")


@hookimpl
def define_transports(transport_dict: Dict[str, Type[Transport]]):
    transport_dict["elasticsearch"] = ElasticTransport
    transport_dict["file"] = FileTransport
    transport_dict["stream"] = StreamTransport


def get_transport(hook, transport_name) -> Type[Transport]:
    """Get the transport class from all transports registered via the define_transports hook"""

    available_transports = {}
    hook.define_transports(transport_dict=available_transports)
    transport = available_transports.get(transport_name.lower())
    if transport is not None:
        return transport

    err_msg = f"Cannot find transport of type '{transport_name}'\n" \
              f"Supported transports: {', '.join(available_transports.keys())}"
    logger.error(err_msg)
    raise TransportNotFoundException(err_msg)
