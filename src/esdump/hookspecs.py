from typing import Dict, Type

import pluggy

from esdump.core.transports import Transport

hookspec = pluggy.HookspecMarker("esdump")


@hookspec
def define_transports(transport_dict: Dict[str, Type[Transport]]):
    """Defines what Transports are available to esdump, keyed by endpoint kind
    """
    ...
