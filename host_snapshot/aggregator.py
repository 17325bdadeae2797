"""Concurrent probe fan-out with a single deadline."""
from __future__ import annotations

import asyncio
import datetime as dt
import logging
import time
from collections.abc import Mapping
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional

from .models import Snapshot
from .normalizer import normalize
from .probes import ProbeError, ProbeFn, classify


class AggregationError(Exception):
    """No probe produced a result, so there is nothing to report."""

    def __init__(self, failures: Dict[str, ProbeError]) -> None:
        super().__init__(f"all {len(failures)} probes failed")
        self.failures = failures


@dataclass(frozen=True)
class ProbeResult:
    name: str
    value: Any = None
    error: Optional[ProbeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ProbeResults(Mapping):
    """Settled results for one snapshot, keyed by probe name."""

    def __init__(self, results: Dict[str, ProbeResult]) -> None:
        self._results = dict(results)

    def __getitem__(self, name: str) -> ProbeResult:
        return self._results[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def value(self, name: str) -> Any:
        result = self._results.get(name)
        if result is None or not result.ok:
            return None
        return result.value

    @property
    def failures(self) -> Dict[str, ProbeError]:
        return {name: result.error for name, result in self._results.items() if result.error is not None}

    def describe_failures(self) -> str:
        return ", ".join(f"{name}={error.kind}" for name, error in self.failures.items())


async def _run_probe(executor: Executor, name: str, probe: ProbeFn) -> ProbeResult:
    started = time.monotonic()
    try:
        value = await asyncio.get_running_loop().run_in_executor(executor, probe)
    except Exception as exc:  # pylint: disable=broad-except
        error = exc if isinstance(exc, ProbeError) else ProbeError(name, classify(exc), str(exc))
        logging.debug("Probe %s failed after %.3fs: %s", name, time.monotonic() - started, error)
        return ProbeResult(name, error=error)
    logging.debug("Probe %s finished in %.3fs", name, time.monotonic() - started)
    return ProbeResult(name, value=value)


async def collect(probes: Mapping, timeout: float) -> ProbeResults:
    """Run every probe concurrently and wait for all of them or the deadline.

    Each call gets its own thread pool, so a probe that hangs past the deadline
    only holds threads of the snapshot that started it. Those threads are left
    to finish on their own and the probe is recorded as a ``timeout`` failure.
    Raises :class:`AggregationError` when no probe succeeded.
    """
    executor = ThreadPoolExecutor(max_workers=max(len(probes), 1), thread_name_prefix="probe")
    try:
        tasks = {name: asyncio.create_task(_run_probe(executor, name, probe)) for name, probe in probes.items()}
        if tasks:
            _, pending = await asyncio.wait(tasks.values(), timeout=timeout)
            for task in pending:
                task.cancel()
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    settled = {}
    for name, task in tasks.items():
        if task.done() and not task.cancelled():
            settled[name] = task.result()
        else:
            settled[name] = ProbeResult(name, error=ProbeError(name, "timeout", f"no result within {timeout:.1f}s"))

    results = ProbeResults(settled)
    if len(results.failures) == len(results):
        raise AggregationError(results.failures)
    return results


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Aggregator:
    """Fans out the probe set and normalizes the settled results into a snapshot."""

    def __init__(
        self,
        probes: Mapping,
        timeout: float,
        clock: Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        self._probes = dict(probes)
        self._timeout = timeout
        self._clock = clock

    async def snapshot(self) -> Snapshot:
        results = await collect(self._probes, self._timeout)
        if results.failures:
            logging.warning(
                "Degraded snapshot: %d of %d probes failed (%s)",
                len(results.failures),
                len(results),
                results.describe_failures(),
            )
        return normalize(results, now=self._clock())
