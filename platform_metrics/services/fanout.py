"""
Scatter-gather over tenant partitions.

Tenants are split into fixed-size batches. Batches run one after the other,
tenants inside a batch run concurrently, each one raced against a deadline.
Every call in a batch is settled before any result is folded in, and only
successes reach the accumulator.
"""

from __future__ import annotations

import asyncio
import time
from typing import Iterator, Sequence

from platform_metrics.core.logging import fanout_logger
from platform_metrics.domain.filters import MetricFilters
from platform_metrics.domain.models import FanOutResult, TenantDescriptor, TenantOutcome
from platform_metrics.repositories.protocols import TenantQueryContextProtocol


def chunk_tenants(tenants: Sequence[TenantDescriptor], batch_size: int) -> Iterator[list[TenantDescriptor]]:
    """Yield ``ceil(len(tenants) / batch_size)`` consecutive batches."""
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    for offset in range(0, len(tenants), batch_size):
        yield list(tenants[offset:offset + batch_size])


async def run_with_timeout(
    context: TenantQueryContextProtocol,
    tenant: TenantDescriptor,
    filters: MetricFilters,
    timeout_seconds: float,
) -> TenantOutcome:
    """
    Run one tenant query against a deadline.

    Never raises: a timeout, any error from the query context or rows that
    cannot be read back become a failed outcome. Rows from a call that missed
    the deadline are dropped.
    """
    try:
        result = await asyncio.wait_for(context.execute(tenant.slug, filters), timeout=timeout_seconds)
        result = result.with_normalized_dates()
    except asyncio.TimeoutError:
        return TenantOutcome.failure(tenant, f"timed out after {timeout_seconds:.3f}s", timed_out=True)
    except Exception as exc:
        return TenantOutcome.failure(tenant, f"{type(exc).__name__}: {exc}")
    return TenantOutcome.success(tenant, result)


async def settle_batch(
    context: TenantQueryContextProtocol,
    batch: Sequence[TenantDescriptor],
    filters: MetricFilters,
    timeout_seconds: float,
) -> list[TenantOutcome]:
    """Wait for every call of the batch, whatever its outcome."""
    settled = await asyncio.gather(
        *(run_with_timeout(context, tenant, filters, timeout_seconds) for tenant in batch),
        return_exceptions=True,
    )
    outcomes: list[TenantOutcome] = []
    for tenant, item in zip(batch, settled):
        if isinstance(item, BaseException):
            if isinstance(item, asyncio.CancelledError):
                raise item
            outcomes.append(TenantOutcome.failure(tenant, f"{type(item).__name__}: {item}"))
        else:
            outcomes.append(item)
    return outcomes


class FanOutExecutor:
    """Batch scheduler plus partial-failure aggregator for one metric window."""

    def __init__(
        self,
        context: TenantQueryContextProtocol,
        *,
        batch_size: int,
        timeout_seconds: float,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.context = context
        self.batch_size = batch_size
        self.timeout_seconds = timeout_seconds

    async def run(self, tenants: Sequence[TenantDescriptor], filters: MetricFilters) -> FanOutResult:
        accumulator = FanOutResult()
        started = time.perf_counter()

        for index, batch in enumerate(chunk_tenants(tenants, self.batch_size)):
            outcomes = await settle_batch(self.context, batch, filters, self.timeout_seconds)
            accumulator.extend(outcomes)
            fanout_logger.debug(
                "Batch settled",
                batch=index,
                batch_tenants=len(batch),
                batch_failures=sum(1 for o in outcomes if not o.ok),
            )

        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        if accumulator.failed:
            fanout_logger.warning(
                "Tenants excluded from aggregate",
                window=f"{filters.window.start}..{filters.window.end}",
                attempted=accumulator.attempted,
                failed=accumulator.failed,
                timed_out=sum(1 for o in accumulator.failures if o.timed_out),
                tenants=",".join(o.tenant.slug for o in accumulator.failures),
            )
        fanout_logger.info(
            "Fan-out completed",
            window=f"{filters.window.start}..{filters.window.end}",
            attempted=accumulator.attempted,
            succeeded=accumulator.succeeded,
            failed=accumulator.failed,
            elapsed_ms=elapsed_ms,
        )
        return accumulator
