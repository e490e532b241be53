import asyncio
import logging
import sys
from typing import Callable, Optional

import pluggy

from esdump import hookspecs
from esdump.config import Config
from esdump.core import transports
from esdump.core.factory import DumpFactory
from esdump.core.options import TransferOptions, TransferType
from esdump.core.session import DumpResult, DumpSession, TransferCounters
from esdump.utils import parse_endpoint

logger = logging.getLogger('esdump')
# stdout may be carrying the dump itself
stderr_log_handler = logging.StreamHandler(sys.stderr)
formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
stderr_log_handler.setFormatter(formatter)
logger.addHandler(stderr_log_handler)

logging.getLogger("elasticsearch").setLevel(logging.WARNING)
logging.getLogger("elastic_transport").setLevel(logging.WARNING)


def get_plugin_manager() -> pluggy.PluginManager:
    pm = pluggy.PluginManager("esdump")
    pm.add_hookspecs(hookspecs)
    pm.load_setuptools_entrypoints("esdump")
    pm.register(transports)
    return pm


class Dump:
    """
    One transfer from ``input`` to ``output``, each given as a store URL,
    a file path or "$" for stdin/stdout. Transfer options are passed as
    keyword arguments (see TransferOptions) or as a ready TransferOptions.

    Construction validates everything that can be checked without I/O and
    raises ConfigurationInvalid on conflicts.
    """

    def __init__(self, input: str, output: str, options: Optional[TransferOptions] = None,
                 input_index: Optional[str] = None, output_index: Optional[str] = None,
                 factory: Optional[DumpFactory] = None, **kwargs):
        self._factory = factory or DumpFactory(Config.from_env())
        self.options = options if options is not None else TransferOptions.build(**kwargs)
        self.input = parse_endpoint(input, input_index)
        self.output = parse_endpoint(output, output_index)
        self._runner = self._build_runner()
        self._finished = False

    def _build_runner(self):
        if self.options.all:
            return self._factory.build_fanout(self.input, self.output, self.options)
        return self._factory.build_session(self.input, self.output, self.options)

    async def run(self, callback: Optional[Callable] = None) -> DumpResult:
        """Run the transfer; ``callback(error, total_written)`` fires once at the end"""
        if self._finished:
            # The previous run closed its clients and exhausted its cursor
            self._runner = self._build_runner()
        self._finished = True
        error = None
        try:
            result = await self._runner.run()
            error = result.error
            return result
        except Exception as e:
            error = e
            raise
        finally:
            await self._factory.close()
            if callback is not None:
                callback(error, self._runner.counters.total_written)

    def dump(self, callback: Optional[Callable] = None) -> DumpResult:
        return asyncio.run(self.run(callback))
