from __future__ import annotations

import asyncio
from collections.abc import Iterable, Iterator
from dataclasses import replace
from pathlib import Path
from typing import Any

from bdd_kernel.adapters.registry import SinkRegistry
from bdd_kernel.adapters.wiring import build_logger, build_sinks
from bdd_kernel.compiler.model import Pickle
from bdd_kernel.compiler.pickles import PickleCompiler
from bdd_kernel.config.loader import load_run_config
from bdd_kernel.config.models import FeatureSourceConfig, RunConfig
from bdd_kernel.errors import ConfigError, FeatureParseError, StepFailedError
from bdd_kernel.execution.executor import (
    Configure,
    ExecutionOptions,
    ScenarioExecutor,
    WorldFactory,
    build_setup_factory,
    failure,
)
from bdd_kernel.execution.results import RunResult
from bdd_kernel.execution.scheduler import Scheduler
from bdd_kernel.features.cache import FeatureCache
from bdd_kernel.features.parser import GherkinParser
from bdd_kernel.filtering.filters import build_filter
from bdd_kernel.filtering.skip_tags import SkipTags
from bdd_kernel.kernel.calls import invoke
from bdd_kernel.kernel.clock import Duration, monotonic_ns
from bdd_kernel.kernel.ids import IdGenerator
from bdd_kernel.messages.emitter import Emitter, EnvelopeSink
from bdd_kernel.messages.envelopes import (
    GherkinDocumentMessage,
    HookMessage,
    MetaMessage,
    ParameterTypeMessage,
    ParseErrorMessage,
    PickleMessage,
    SourceMessage,
    StepDefinitionMessage,
    StepOutcome,
    TestCaseMessage,
    TestRunFinishedMessage,
    TestRunHookFinishedMessage,
    TestRunHookStartedMessage,
    TestRunStartedMessage,
)
from bdd_kernel.observability.logging import RunLogger
from bdd_kernel.planning.planner import TestCase, TestPlanner
from bdd_kernel.steps.setup import HookKind, Setup


class BddRuntime:
    # Wires the pipeline: discovery -> compile/filter -> catalog -> plan -> run -> finish.
    def __init__(
        self,
        world_factory: WorldFactory,
        configure: Configure,
        config: RunConfig | None = None,
        *,
        sinks: Iterable[EnvelopeSink] = (),
        logger: RunLogger | None = None,
        sink_registry: SinkRegistry | None = None,
    ) -> None:
        self._world_factory = world_factory
        self._configure = configure
        self._config = config or RunConfig()
        self._sinks = list(sinks)
        self._logger = logger
        self._sink_registry = sink_registry

    @classmethod
    def from_config_file(
        cls,
        path: Path | str,
        world_factory: WorldFactory,
        configure: Configure,
        *,
        sinks: Iterable[EnvelopeSink] = (),
    ) -> BddRuntime:
        return cls(world_factory, configure, load_run_config(path), sinks=sinks)

    @property
    def config(self) -> RunConfig:
        return self._config

    def run(self) -> RunResult:
        return asyncio.run(self.run_async())

    def run_strict(self) -> RunResult:
        # Raises RunFailedError when anything did not pass.
        result = self.run()
        result.raise_for_failures()
        return result

    async def run_async(self) -> RunResult:
        config = self._config
        ids = IdGenerator()
        emitter = Emitter([*self._sinks, *build_sinks(config.sinks, self._sink_registry)])
        owns_logger = self._logger is None
        log = self._logger if self._logger is not None else build_logger(config.log, self._sink_registry)
        try:
            emitter.emit(MetaMessage())
            cache, parse_errors = self._discover(ids, emitter, log)
            pickles = self._compile(ids, cache, emitter)

            # The catalog owns run hooks and supplies every definition envelope; its handlers never run here.
            catalog = await build_setup_factory(self._world_factory, self._configure)()
            _emit_definitions(catalog, emitter)

            skip_tags = SkipTags.of(config.skip_tags)
            planner = TestPlanner(ids, skip_tags=skip_tags, dry_run=config.dry_run)
            planned: list[tuple[Pickle, TestCase]] = []
            for pickle in pickles:
                test_case = planner.plan_pickle(pickle, catalog)
                emitter.emit(TestCaseMessage(test_case=test_case))
                planned.append((pickle, test_case))

            run_started_id = ids.next("tr")
            emitter.emit(TestRunStartedMessage(id=run_started_id))
            log.info("run started", pickles=len(planned), parse_errors=len(parse_errors))

            hook_errors = await self._run_hooks(HookKind.BEFORE_TEST_RUN, catalog, ids, emitter, log, run_started_id)
            executor = ScenarioExecutor(
                self._world_factory,
                self._configure,
                emitter=emitter,
                ids=ids,
                options=ExecutionOptions(dry_run=config.dry_run, retries=config.retries, skip_tags=skip_tags),
                logger=log,
                test_run_started_id=run_started_id,
            )
            scheduler = Scheduler(executor, max_concurrency=config.effective_concurrency)
            result = await scheduler.run(planned, parse_errors=parse_errors)
            hook_errors.extend(
                await self._run_hooks(HookKind.AFTER_TEST_RUN, catalog, ids, emitter, log, run_started_id)
            )
            result = replace(result, run_hook_errors=tuple(hook_errors))

            emitter.emit(TestRunFinishedMessage(success=result.success, test_run_started_id=run_started_id))
            log.info("run finished", success=result.success, **result.summary.to_dict())
            return result
        finally:
            emitter.close()
            if owns_logger:
                log.close()

    def _discover(
        self, ids: IdGenerator, emitter: Emitter, log: RunLogger
    ) -> tuple[FeatureCache, list[FeatureParseError]]:
        cache = FeatureCache(GherkinParser(ids))
        parse_errors: list[FeatureParseError] = []
        for source in self._config.sources:
            for uri, path in _expand(source):
                # A file-backed uri already cached is a no-op and is announced only once.
                if path is not None and uri in cache:
                    continue
                try:
                    if path is not None:
                        data = _read(path)
                        emitter.emit(SourceMessage(uri=uri, data=data))
                        document = cache.load(uri, path=path, contents=data)
                    elif source.text is not None:
                        emitter.emit(SourceMessage(uri=uri, data=source.text))
                        document = cache.load(uri, text=source.text)
                    else:
                        document = cache.load(uri, document=source.document)
                except FeatureParseError as exc:
                    parse_errors.append(exc)
                    emitter.emit(ParseErrorMessage(uri=exc.uri, message=exc.message, line=exc.line, column=exc.column))
                    log.warning("feature parse error", uri=exc.uri, message=exc.message, line=exc.line)
                    continue
                emitter.emit(GherkinDocumentMessage(document=document))
        return cache, parse_errors

    def _compile(self, ids: IdGenerator, cache: FeatureCache, emitter: Emitter) -> list[Pickle]:
        config = self._config
        location = None
        if config.location is not None:
            location = (config.location.uri, config.location.line) if config.location.line else None
        selection = build_filter(tags=config.tags, name=config.name, location=location, node_lines=cache.node_lines())
        pickles = selection.apply(PickleCompiler(ids).compile(cache))
        if config.location is not None and config.location.line is None:
            # A location without a line selects the whole file.
            pickles = [pickle for pickle in pickles if pickle.uri == config.location.uri]
        for pickle in pickles:
            emitter.emit(PickleMessage(pickle=pickle))
        return pickles

    async def _run_hooks(
        self,
        kind: HookKind,
        catalog: Setup[Any],
        ids: IdGenerator,
        emitter: Emitter,
        log: RunLogger,
        run_started_id: str,
    ) -> list[StepFailedError]:
        errors: list[StepFailedError] = []
        if self._config.dry_run:
            return errors
        for hook in catalog.hooks(kind):
            started_id = ids.next("trh")
            emitter.emit(TestRunHookStartedMessage(id=started_id, test_run_started_id=run_started_id, hook_id=hook.id))
            start = monotonic_ns()
            status, message, exception_type = "PASSED", None, None
            try:
                await invoke(hook.handler)
            except Exception as exc:  # noqa: BLE001 - reported as a failed run hook
                error = failure(hook.name or kind.value, exc)
                errors.append(error)
                status, message, exception_type = "FAILED", error.stack, type(exc).__name__
                log.error("run hook failed", hook_id=hook.id, message=error.message)
            emitter.emit(
                TestRunHookFinishedMessage(
                    test_run_hook_started_id=started_id,
                    result=StepOutcome(
                        status=status,
                        duration=Duration.from_nanos(monotonic_ns() - start),
                        message=message,
                        exception_type=exception_type,
                    ),
                )
            )
        return errors


def run_features(
    world_factory: WorldFactory,
    configure: Configure,
    config: RunConfig | None = None,
    *,
    sinks: Iterable[EnvelopeSink] = (),
) -> RunResult:
    return BddRuntime(world_factory, configure, config, sinks=sinks).run()


def _emit_definitions(catalog: Setup[Any], emitter: Emitter) -> None:
    for step_def in catalog.step_defs:
        emitter.emit(StepDefinitionMessage(step_def=step_def))
    # Only custom types are listed; built-ins never get an envelope.
    for param_type in catalog.parameter_types:
        emitter.emit(ParameterTypeMessage(param_type=param_type))
    for hook in catalog.all_hooks:
        emitter.emit(HookMessage(hook=hook))


def _expand(source: FeatureSourceConfig) -> Iterator[tuple[str, Path | None]]:
    # Directory sources expand to every *.feature below them, sorted; uris are relative to the parent.
    if source.path is None:
        yield source.uri or "", None
        return
    path = Path(source.path)
    if path.is_dir():
        for item in sorted(path.rglob("*.feature")):
            yield item.relative_to(path.parent).as_posix(), item
        return
    if not path.is_file():
        raise ConfigError(f"Feature source not found: {path}")
    yield source.uri or source.path, path


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read feature source {path}: {exc}") from exc
