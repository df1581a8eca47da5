"""End-to-end tests for SpecRunner: tree walk, hooks, bail, cancellation, reporters."""

from __future__ import annotations

import asyncio
import threading

import pytest
import structlog

from specrun.core.cancellation import CancellationToken, RunCancelledError
from specrun.execution import ParallelExecutionStrategy, SkipReason, SpecStatus
from specrun.reporting import CollectingReporter, LoggingReporter, Reporter
from specrun.runner import SpecRunner, SpecRunnerBuilder
from specrun.tree import SpecContext


# ── Helpers ──────────────────────────────────────────────────────────────


def _fail():
    raise AssertionError("expected failure")


def _statuses(results):
    return [r.status for r in results]


# ── Ordering ─────────────────────────────────────────────────────────────


class TestResultOrdering:
    @pytest.mark.asyncio
    async def test_sequential_results_match_declaration(self, flat_tree, trace):
        results = await SpecRunner().run_async(flat_tree)

        assert [r.spec for r in results] == flat_tree.specs
        assert trace.events == [f"spec {i}" for i in range(5)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("k", [1, 3, 8])
    async def test_parallel_results_match_declaration(self, k):
        root = SpecContext("root")
        for i in range(25):

            async def body(i=i):
                await asyncio.sleep((25 - i) * 0.0005)

            root.it(f"spec {i}", body)

        results = await SpecRunnerBuilder().with_parallel_execution(k).build().run_async(root)

        assert len(results) == 25
        assert [r.spec for r in results] == root.specs
        assert all(r.status is SpecStatus.PASSED for r in results)

    @pytest.mark.asyncio
    async def test_depth_first_context_order(self):
        root = SpecContext("root")
        root.it("r1", lambda: None)
        a = root.describe("a")
        a.it("a1", lambda: None)
        a.describe("a-inner").it("ai1", lambda: None)
        root.describe("b").it("b1", lambda: None)
        root.it("r2", lambda: None)

        results = await SpecRunner().run_async(root)

        assert [r.spec.description for r in results] == ["r1", "r2", "a1", "ai1", "b1"]
        assert results[3].context_path == ("root", "a", "a-inner")

    def test_sync_run_wrapper(self, flat_tree):
        results = SpecRunner().run(flat_tree)
        assert len(results) == 5


# ── Hooks ────────────────────────────────────────────────────────────────


class TestHookOrdering:
    @pytest.mark.asyncio
    async def test_three_level_hook_trace(self, nested_tree, trace):
        await SpecRunner().run_async(nested_tree)

        assert trace.events == [
            "BeforeAll(root)",
            "BeforeAll(outer)",
            "BeforeAll(inner)",
            "BeforeEach(root)",
            "BeforeEach(outer)",
            "BeforeEach(inner)",
            "spec",
            "AfterEach(inner)",
            "AfterEach(outer)",
            "AfterEach(root)",
            "AfterAll(inner)",
            "AfterAll(outer)",
            "AfterAll(root)",
        ]

    @pytest.mark.asyncio
    async def test_before_all_once_per_context_under_parallelism(self, trace):
        root = SpecContext("root")
        root.hooks(
            before_all=trace.hook("ba"),
            after_all=trace.hook("aa"),
            before_each=trace.hook("be"),
        )
        for i in range(10):
            root.it(f"s{i}", lambda: None)

        await SpecRunnerBuilder().with_parallel_execution(4).build().run_async(root)

        assert trace.count("ba") == 1
        assert trace.count("aa") == 1
        assert trace.count("be") == 10
        assert trace.events[0] == "ba"
        assert trace.events[-1] == "aa"

    @pytest.mark.asyncio
    async def test_async_hooks_are_awaited(self, trace):
        root = SpecContext("root")

        async def before_all():
            await asyncio.sleep(0)
            trace.record("async ba")

        root.before_all = before_all
        root.it("s", trace.hook("spec"))

        await SpecRunner().run_async(root)

        assert trace.events == ["async ba", "spec"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("slot", ["before_all", "before_each", "after_each", "after_all"])
    async def test_hook_failure_aborts_run_unmodified(self, slot, trace):
        boom = RuntimeError(f"{slot} exploded")

        def explode():
            raise boom

        root = SpecContext("root")
        setattr(root, slot, explode)
        root.it("s1", trace.hook("s1"))
        root.describe("later").it("s2", trace.hook("s2"))
        collector = CollectingReporter()

        runner = SpecRunnerBuilder().add_reporter(collector).build()
        with pytest.raises(RuntimeError) as exc_info:
            await runner.run_async(root)

        assert exc_info.value is boom
        assert collector.reports == []
        if slot in ("before_all", "before_each"):
            assert "s1" not in trace
            assert "s2" not in trace

    @pytest.mark.asyncio
    async def test_hooks_skipped_for_context_without_runnable_specs(self, trace):
        root = SpecContext("root")
        pending = root.describe("pending only")
        pending.hooks(before_all=trace.hook("ba pending"), after_all=trace.hook("aa pending"))
        pending.it("todo")
        skipped = root.describe("skipped only")
        skipped.hooks(before_all=trace.hook("ba skipped"))
        skipped.xit("later", lambda: None)

        results = await SpecRunner().run_async(root)

        assert trace.events == []
        assert _statuses(results) == [SpecStatus.PENDING, SpecStatus.SKIPPED]

    @pytest.mark.asyncio
    async def test_parent_hooks_fire_when_only_descendant_runs(self, trace):
        root = SpecContext("root")
        root.hooks(before_all=trace.hook("ba root"), after_all=trace.hook("aa root"))
        root.describe("child").it("s", trace.hook("s"))

        await SpecRunner().run_async(root)

        assert trace.events == ["ba root", "s", "aa root"]


# ── Bail ─────────────────────────────────────────────────────────────────


class TestBail:
    @pytest.mark.asyncio
    async def test_pass_fail_pass_with_bail(self, pass_fail_pass):
        results = await SpecRunnerBuilder().with_bail().build().run_async(pass_fail_pass)

        assert _statuses(results) == [SpecStatus.PASSED, SpecStatus.FAILED, SpecStatus.SKIPPED]

    @pytest.mark.asyncio
    async def test_pass_fail_pass_without_bail(self, pass_fail_pass):
        results = await SpecRunner().run_async(pass_fail_pass)

        assert _statuses(results) == [SpecStatus.PASSED, SpecStatus.FAILED, SpecStatus.PASSED]

    @pytest.mark.asyncio
    async def test_bail_skips_later_contexts_and_their_hooks(self, trace):
        root = SpecContext("root")
        first = root.describe("first")
        first.hooks(before_all=trace.hook("ba first"), after_all=trace.hook("aa first"))
        first.it("fails", _fail)
        second = root.describe("second")
        second.hooks(before_all=trace.hook("ba second"), after_all=trace.hook("aa second"))
        second.it("never runs", trace.hook("body second"))

        results = await SpecRunnerBuilder().with_bail().build().run_async(root)

        assert _statuses(results) == [SpecStatus.FAILED, SpecStatus.SKIPPED]
        assert results[1].reason == SkipReason.BAIL
        assert trace.events == ["ba first", "aa first"]

    @pytest.mark.asyncio
    async def test_parallel_bail_skips_something(self):
        root = SpecContext("root")
        root.it("fails fast", _fail)
        for i in range(30):

            async def slow():
                await asyncio.sleep(0.002)

            root.it(f"slow {i}", slow)

        results = await (
            SpecRunnerBuilder().with_parallel_execution(2).with_bail().build().run_async(root)
        )

        assert results[0].status is SpecStatus.FAILED
        assert SpecStatus.SKIPPED in _statuses(results)
        assert len(results) == 31


# ── Focus ────────────────────────────────────────────────────────────────


class TestFocus:
    @pytest.mark.asyncio
    async def test_focused_spec_runs_alone(self, trace):
        root = SpecContext("root")
        root.it("plain", trace.hook("plain"))
        root.describe("deep").fit("focused", trace.hook("focused"))

        results = await SpecRunner().run_async(root)

        assert trace.events == ["focused"]
        assert results[0].status is SpecStatus.SKIPPED
        assert results[0].reason == SkipReason.FOCUS
        assert results[1].status is SpecStatus.PASSED


# ── Cancellation ─────────────────────────────────────────────────────────


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_mid_run_raises(self):
        token = CancellationToken()
        executed: list[int] = []
        root = SpecContext("root")
        for i in range(10):

            def body(i=i):
                executed.append(i)
                if i == 3:
                    token.cancel()

            root.it(f"s{i}", body)

        with pytest.raises(RunCancelledError):
            await SpecRunner().run_async(root, token=token)

        assert executed == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_cancel_before_start_executes_fewer_than_all(self, flat_tree, trace):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(RunCancelledError):
            await SpecRunner().run_async(flat_tree, token=token)

        assert len(trace.events) < len(flat_tree.specs)

    @pytest.mark.asyncio
    async def test_cancel_during_parallel_run(self):
        token = CancellationToken()
        started = threading.Event()
        root = SpecContext("root")
        for i in range(20):

            async def body():
                started.set()
                await asyncio.sleep(0.01)

            root.it(f"s{i}", body)

        runner = SpecRunnerBuilder().with_strategy(ParallelExecutionStrategy(2)).build()
        task = asyncio.create_task(runner.run_async(root, token=token))
        while not started.is_set():
            await asyncio.sleep(0.001)
        token.cancel()

        with pytest.raises(RunCancelledError):
            await task

    @pytest.mark.asyncio
    async def test_hosting_task_cancellation_propagates(self):
        root = SpecContext("root")

        async def forever():
            await asyncio.sleep(10)

        root.it("hangs", forever)
        task = asyncio.create_task(SpecRunner().run_async(root))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_spec_failure_does_not_cancel(self, pass_fail_pass):
        results = await SpecRunner().run_async(pass_fail_pass)
        assert len(results) == 3


# ── Reporters ────────────────────────────────────────────────────────────


class TestReporterEvents:
    @pytest.mark.asyncio
    async def test_events_in_order(self, flat_tree):
        collector = CollectingReporter()
        runner = SpecRunnerBuilder().add_reporter(collector).build()

        results = await runner.run_async(flat_tree)

        assert len(collector.started) == 1
        assert collector.started[0].total_specs == 5
        assert collector.results == results
        assert len(collector.reports) == 1
        assert collector.last_report.summary.total == 5

    @pytest.mark.asyncio
    async def test_parallel_events_declared_order_no_duplicates(self):
        root = SpecContext("root")
        for i in range(12):

            async def body(i=i):
                await asyncio.sleep((12 - i) * 0.001)

            root.it(f"s{i}", body)
        collector = CollectingReporter()
        runner = SpecRunnerBuilder().with_parallel_execution(6).add_reporter(collector).build()

        await runner.run_async(root)

        assert [r.spec for r in collector.results] == root.specs

    @pytest.mark.asyncio
    async def test_bail_skipped_results_are_reported_once(self, pass_fail_pass):
        collector = CollectingReporter()
        runner = SpecRunnerBuilder().with_bail().add_reporter(collector).build()

        results = await runner.run_async(pass_fail_pass)

        assert collector.results == results

    @pytest.mark.asyncio
    async def test_every_reporter_gets_every_event(self, flat_tree):
        first, second = CollectingReporter(), CollectingReporter()
        runner = SpecRunnerBuilder().add_reporter(first).add_reporter(second).build()

        await runner.run_async(flat_tree)

        assert first.results == second.results
        assert len(first.reports) == len(second.reports) == 1

    @pytest.mark.asyncio
    async def test_async_reporter_methods_awaited(self, flat_tree):
        seen: list[str] = []

        class AsyncReporter(Reporter):
            async def on_spec_completed(self, result):
                await asyncio.sleep(0)
                seen.append(result.spec.description)

        await SpecRunnerBuilder().add_reporter(AsyncReporter()).build().run_async(flat_tree)

        assert seen == [f"spec {i}" for i in range(5)]


class TestReporterErrors:
    class Exploding(Reporter):
        def on_spec_completed(self, result):
            raise RuntimeError("reporter broke")

    @pytest.mark.asyncio
    async def test_isolated_by_default(self, flat_tree):
        collector = CollectingReporter()
        runner = SpecRunnerBuilder().add_reporter(self.Exploding()).add_reporter(collector).build()

        results = await runner.run_async(flat_tree)

        assert len(results) == 5
        assert collector.results == results

    @pytest.mark.asyncio
    async def test_propagates_when_not_isolated(self, flat_tree):
        collector = CollectingReporter()
        runner = (
            SpecRunnerBuilder()
            .add_reporter(self.Exploding())
            .add_reporter(collector)
            .isolate_reporter_errors(False)
            .build()
        )

        with pytest.raises(RuntimeError, match="reporter broke"):
            await runner.run_async(flat_tree)

        # the second reporter still heard the event that failed in the first
        assert len(collector.results) == 1


# ── Reports ──────────────────────────────────────────────────────────────


class TestRunReport:
    @pytest.mark.asyncio
    async def test_report_summary(self, pass_fail_pass):
        report = await SpecRunner().run_report_async(pass_fail_pass)

        assert report.summary.total == 3
        assert report.summary.passed == 2
        assert report.summary.failed == 1
        assert not report.success
        assert report.duration >= 0

    def test_sync_run_report(self, flat_tree):
        report = SpecRunner().run_report(flat_tree)
        assert report.summary.success
        assert report.contexts[0].description == "root"


# ── Run completion ───────────────────────────────────────────────────────


class TestRunCompletion:
    @pytest.mark.asyncio
    async def test_plain_run_returns_results(self):
        root = SpecContext("root")
        root.it("passes", lambda: None)

        results = await SpecRunnerBuilder().build().run_async(root)

        assert [r.status for r in results] == [SpecStatus.PASSED]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("parallel", [False, True])
    async def test_run_completed_delivered_once(self, flat_tree, parallel):
        completed: list = []

        class Completion(Reporter):
            def on_run_completed(self, report):
                completed.append(report)

        builder = SpecRunnerBuilder().add_reporter(Completion())
        if parallel:
            builder.with_parallel_execution(3)

        await builder.build().run_async(flat_tree)

        assert len(completed) == 1
        assert completed[0].summary.total == 5
        assert completed[0].summary.passed == 5

    @pytest.mark.asyncio
    async def test_logging_reporter_does_not_break_strict_run(self, pass_fail_pass):
        runner = (
            SpecRunnerBuilder()
            .add_reporter(LoggingReporter())
            .isolate_reporter_errors(False)
            .build()
        )

        report = await runner.run_report_async(pass_fail_pass)

        assert report.summary.total == 3


class TestTimeoutThroughRunner:
    @pytest.mark.asyncio
    async def test_timed_out_spec_still_runs_after_each(self, trace):
        root = SpecContext("root")
        root.hooks(before_each=trace.hook("BeforeEach"), after_each=trace.hook("AfterEach"))

        async def slow():
            await asyncio.sleep(0.5)

        root.it("slow", slow)
        root.it("fast", trace.hook("fast"))

        results = await SpecRunnerBuilder().with_timeout(30).build().run_async(root)

        assert [r.status for r in results] == [SpecStatus.FAILED, SpecStatus.PASSED]
        assert trace.events == ["BeforeEach", "AfterEach", "BeforeEach", "fast", "AfterEach"]


class TestLogBinding:
    @pytest.mark.asyncio
    async def test_body_sees_context_path_and_spec(self):
        seen: list[dict] = []
        root = SpecContext("Calculator")
        root.describe("add").it(
            "sums", lambda: seen.append(structlog.contextvars.get_contextvars())
        )

        await SpecRunner().run_async(root)

        assert seen[0]["context_path"] == "Calculator > add"
        assert seen[0]["spec"] == "sums"
        assert "context_path" not in structlog.contextvars.get_contextvars()
