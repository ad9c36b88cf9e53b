from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence

from bdd_kernel.compiler.model import Pickle
from bdd_kernel.errors import FeatureParseError
from bdd_kernel.execution.executor import ScenarioExecutor
from bdd_kernel.execution.results import RunResult, RunSummary, ScenarioResult
from bdd_kernel.planning.planner import TestCase


class Scheduler:
    # Runs planned pickles sequentially or with bounded concurrency; results keep plan order.
    def __init__(self, executor: ScenarioExecutor, *, max_concurrency: int = 1) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._executor = executor
        self._max_concurrency = max_concurrency

    async def run(
        self,
        planned: Sequence[tuple[Pickle, TestCase]],
        *,
        parse_errors: Iterable[FeatureParseError] = (),
    ) -> RunResult:
        if self._max_concurrency == 1:
            scenarios = [await self._executor.execute(pickle, case) for pickle, case in planned]
        else:
            scenarios = await self._run_concurrently(planned)
        return RunResult(
            summary=RunSummary.of(scenarios),
            scenarios=tuple(scenarios),
            parse_errors=tuple(parse_errors),
        )

    async def _run_concurrently(self, planned: Sequence[tuple[Pickle, TestCase]]) -> list[ScenarioResult]:
        # Nothing is shared between units, so the semaphore is the only coordination.
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _run(pickle: Pickle, case: TestCase) -> ScenarioResult:
            async with semaphore:
                return await self._executor.execute(pickle, case)

        # One unit's error never cancels its siblings: every started block is finished first.
        outcomes = await asyncio.gather(*(_run(pickle, case) for pickle, case in planned), return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        return [outcome for outcome in outcomes if isinstance(outcome, ScenarioResult)]
