import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from esdump.core.errors import ConfigurationInvalid, DumpException
from esdump.core.options import TransferOptions
from esdump.core.session import DumpResult, TransferCounters, check_transports
from esdump.core.transports import Capability, Transport
from esdump.utils import Endpoint

logger = logging.getLogger('esdump')


@dataclass
class FanOutResult(DumpResult):
    results: List[DumpResult] = field(default_factory=list)

    @property
    def errors(self) -> List[DumpResult]:
        return [r for r in self.results if r.error is not None]


class FanOutController:
    """
    Runs one DumpSession per container found on the input store, all writing
    to the same output. A failing container is reported at the end and does
    not stop the others.
    """

    def __init__(self, factory, input: Endpoint, output: Transport, options: TransferOptions,
                 exclude: Iterable[str] = ()):
        self.factory = factory
        self.input = input
        self.output = output
        self.options = options
        self.exclude = set(options.exclude) | set(exclude)
        self.discovery = factory.build_transport(input, 'input', options)
        if not self.discovery.supports(Capability.DISCOVER):
            raise ConfigurationInvalid(
                message=f"cannot list the containers of {self.discovery.describe()}")
        check_transports(self.discovery, output, options)
        self.counters = TransferCounters()

    async def discover(self) -> List[str]:
        containers = await self.discovery.list_containers()
        return [c for c in containers if c not in self.exclude]

    async def run(self, callback: Optional[Callable] = None) -> FanOutResult:
        self.counters = TransferCounters()
        result = FanOutResult(counters=self.counters)
        await self.output.open()
        try:
            containers = await self.discover()
            logger.info(f"Dumping {len(containers)} containers from {self.discovery.describe()}")
            slots = asyncio.Semaphore(self.options.concurrency)

            async def run_one(container):
                async with slots:
                    return await self._run_container(container)

            result.results = list(await asyncio.gather(*(run_one(c) for c in containers)))
        except DumpException as e:
            logger.error(f"Could not list containers of {self.discovery.describe()}: {e.message}")
            result.error = e
        finally:
            await self.output.close()

        for session_result in result.results:
            result.counters.add(session_result.counters)
            result.failures.extend(session_result.failures)
        if result.errors and result.error is None:
            failed = ", ".join(f"{r.container}: {r.error}" for r in result.errors)
            result.error = DumpException(
                message=f"{len(result.errors)} of {len(result.results)} containers failed",
                details=failed)
            logger.error(f"{result.error.message} ({failed})")
        if callback is not None:
            callback(result.error, result.counters)
        return result

    async def _run_container(self, container: str) -> DumpResult:
        try:
            session = self.factory.build_session(
                self.input.with_index(container), self.output, self.options,
                manage_output=False, container=container)
        except DumpException as e:
            return DumpResult(counters=TransferCounters(), error=e, container=container)
        try:
            return await session.run()
        except Exception as e:
            # Recorded with the partial counters; the other containers keep going
            logger.error(f"Transfer of {container} failed: {e!r}")
            return DumpResult(counters=session.counters, error=e, failures=session.failures,
                              container=container)
