"""Ordered bulk resolution under a dispatch interval and a concurrency bound."""

import asyncio
from dataclasses import dataclass
from typing import cast

from loguru import logger

from directory_api.lib.geocoder.base import InvalidAddressError, ProviderMisconfiguredError
from directory_api.lib.geocoder.resolver import GeocodeResolver, Resolution
from directory_api.lib.geocoder.throttling import RateGate


@dataclass(frozen=True)
class BatchOutcome:
    """Per-address result of a batch: a resolution, or the reason the input was rejected."""

    address: str
    resolution: Resolution | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.resolution is not None


class BatchResolver:
    """Resolves a list of addresses through a ``GeocodeResolver``.

    Items are dispatched in input order, at most ``concurrency`` at a time and
    no closer together than ``dispatch_interval`` seconds.  Results are
    reassembled positionally, so output order and length always match the
    input, duplicates included.

    Cancelling ``resolve_all`` stops dispatch.  Resolutions already started
    run to completion inside the resolver and still populate the cache.
    """

    def __init__(
        self,
        resolver: GeocodeResolver,
        *,
        concurrency: int = 5,
        dispatch_interval: float = 0.0,
    ) -> None:
        if concurrency < 1:
            msg = "concurrency must be >= 1"
            raise ValueError(msg)
        self.resolver = resolver
        self.concurrency = concurrency
        # Never dispatch faster than the provider's own etiquette allows
        self.dispatch_interval = max(dispatch_interval, resolver.provider.rate_limit_delay)

    async def resolve_all(self, addresses: list[str]) -> list[BatchOutcome]:
        """Resolve every address, preserving order.

        Args:
            addresses: Freeform address strings.

        Returns:
            One outcome per input, in input order.

        Raises:
            ProviderMisconfiguredError: The provider cannot be used at all;
                dispatch stops and the batch fails as a whole.
            Exception: Any other unexpected item failure, after dispatch has
                stopped and every started item has finished.
        """
        outcomes: list[BatchOutcome | None] = [None] * len(addresses)
        semaphore = asyncio.Semaphore(self.concurrency)
        gate = RateGate(self.dispatch_interval)
        failures: list[Exception] = []
        tasks: list[asyncio.Task[None]] = []

        async def _run(index: int, address: str) -> None:
            try:
                outcomes[index] = await self._resolve_one(address)
            except ProviderMisconfiguredError as e:
                failures.append(e)
            except Exception as e:
                logger.exception(f"Batch item {index} failed unexpectedly")
                failures.append(e)
            finally:
                semaphore.release()

        try:
            for index, address in enumerate(addresses):
                await semaphore.acquire()
                if failures:
                    semaphore.release()
                    break
                await gate.wait()
                tasks.append(asyncio.create_task(_run(index, address)))
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            logger.info(f"Batch cancelled after dispatching {len(tasks)}/{len(addresses)} addresses")
            for task in tasks:
                task.cancel()
            raise

        if failures:
            logger.warning(f"Batch aborted after dispatching {len(tasks)}/{len(addresses)} addresses")
            raise failures[0]

        # Every slot is filled once all dispatched items finished without a failure
        results = cast(list[BatchOutcome], outcomes)
        fallbacks = sum(1 for o in results if o.resolution is not None and o.resolution.fallback)
        logger.info(f"Batch resolved {len(results)} addresses ({fallbacks} fallback)")
        return results

    async def _resolve_one(self, address: str) -> BatchOutcome:
        try:
            resolution = await self.resolver.resolve(address)
        except InvalidAddressError as e:
            return BatchOutcome(address=address, error=str(e))
        return BatchOutcome(address=address, resolution=resolution)
