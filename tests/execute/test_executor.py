"""Tests for plan execution."""

import threading
import pytest
from converge.execute.executor import Executor
from converge.execute.results import ActionStatus
from converge.plan.planner import Planner
from converge.provider import SimulatedProvider
from converge.provider.base import ResourceHandler
from converge.state.backends import MemoryBackend
from converge.state.store import StateStore
from converge.utils.errors import FatalProviderError, RetryableProviderError, StateStoreError


class HookedHandler(ResourceHandler):
    """Calls hook(kind, attributes) before delegating create."""
    
    def __init__(self, inner, hook):
        super().__init__(inner.kind, inner.schema)
        self.inner = inner
        self.hook = hook
    
    def create(self, attributes):
        self.hook(self.kind, attributes)
        return self.inner.create(attributes)
    
    def read(self, resource_id):
        return self.inner.read(resource_id)
    
    def update(self, resource_id, changes, attributes):
        return self.inner.update(resource_id, changes, attributes)
    
    def delete(self, resource_id):
        self.inner.delete(resource_id)


class HookedProvider(SimulatedProvider):
    
    def __init__(self, schemas, hook):
        super().__init__(schemas=schemas)
        self.hook = hook
    
    def handler_for(self, kind):
        return HookedHandler(super().handler_for(kind), self.hook)


class FailingBackend(MemoryBackend):
    """Accepts a number of writes, then fails."""
    
    def __init__(self, allowed):
        super().__init__()
        self.allowed = allowed
    
    def write(self, data):
        if self.writes >= self.allowed:
            raise StateStoreError("disk full")
        super().write(data)


def _executor(provider, store, settings, **kwargs):
    return Executor(provider, store, retry=settings.retry, sleep=lambda seconds: None, **kwargs)


def _statuses(report):
    return {r.action_id: r.status for r in report.results}


@pytest.fixture
def network_plan(make_graph, network_doc, settings):
    return Planner(settings.kinds).plan(make_graph(network_doc), {})


class TestApply:
    """Test successful apply runs."""
    
    def test_apply_commits_state(self, network_plan, provider, store, settings):
        report = _executor(provider, store, settings).apply(network_plan)
        
        assert report.success
        assert report.summary() == {"applied": 3, "failed": 0, "skipped": 0, "cancelled": 0}
        subnet = store.get("aws_subnet.public_subnet")
        vpc = store.get("aws_vpc.main_vpc")
        assert subnet.attributes["vpc_id"] == vpc.resource_id
        assert vpc.resource_id.startswith("vpc-")
        assert subnet.dependencies == ["aws_vpc.main_vpc"]
    
    def test_interpolated_reference_resolved(self, make_graph, provider, store, settings):
        plan = Planner(settings.kinds).plan(make_graph({"resources": {
            "web": {"kind": "aws_instance", "attributes": {"ami": "ami-1"}},
            "alarm": {
                "kind": "aws_cloudwatch_metric_alarm",
                "attributes": {"alarm_name": "cpu-${web.id}", "target": "${web.private_ip}"},
            },
        }}), {})
        
        assert _executor(provider, store, settings).apply(plan).success
        
        web = store.get("aws_instance.web")
        alarm = store.get("aws_cloudwatch_metric_alarm.alarm")
        assert alarm.attributes["alarm_name"] == f"cpu-{web.resource_id}"
        assert alarm.attributes["target"] == web.outputs["private_ip"]
    
    def test_update_in_place_keeps_id(self, make_graph, network_doc, provider, store, settings):
        planner = Planner(settings.kinds)
        assert _executor(provider, store, settings).apply(planner.plan(make_graph(network_doc), {})).success
        vpc_id = store.get("aws_vpc.main_vpc").resource_id
        network_doc["resources"]["main_vpc"]["attributes"]["tags"] = {"Name": "renamed"}
        
        report = _executor(provider, store, settings).apply(planner.plan(make_graph(network_doc), store.load()))
        
        assert report.success
        assert store.get("aws_vpc.main_vpc").resource_id == vpc_id
        assert provider.cloud.get(vpc_id)["attributes"]["tags"] == {"Name": "renamed"}
    
    def test_replacement_issues_new_id(self, make_graph, network_doc, provider, store, settings):
        planner = Planner(settings.kinds)
        assert _executor(provider, store, settings).apply(planner.plan(make_graph(network_doc), {})).success
        old_id = store.get("aws_vpc.main_vpc").resource_id
        network_doc["resources"]["main_vpc"]["attributes"]["cidr_block"] = "10.9.0.0/16"
        
        report = _executor(provider, store, settings).apply(planner.plan(make_graph(network_doc), store.load()))
        
        assert report.success
        new_id = store.get("aws_vpc.main_vpc").resource_id
        assert new_id != old_id
        assert provider.cloud.get(old_id) is None
        assert store.get("aws_subnet.public_subnet").attributes["vpc_id"] == new_id
    
    def test_delete_removes_record(self, network_plan, make_graph, provider, store, settings):
        assert _executor(provider, store, settings).apply(network_plan).success
        
        plan = Planner(settings.kinds).plan_destroy(store.load())
        report = _executor(provider, store, settings).apply(plan)
        
        assert report.success
        assert store.list() == []
        assert provider.cloud.resources == {}
    
    def test_delete_of_resource_gone_at_provider(self, network_plan, provider, store, settings):
        assert _executor(provider, store, settings).apply(network_plan).success
        provider.cloud.remove(store.get("aws_s3_bucket.logs").resource_id)
        
        report = _executor(provider, store, settings).apply(Planner(settings.kinds).plan_destroy(store.load()))
        
        assert report.success
        assert store.get("aws_s3_bucket.logs") is None


class TestRetry:
    """Test retry of transient provider failures."""
    
    def test_retry_then_success(self, network_plan, provider, store, settings):
        provider.cloud.inject_fault(
            "create", "aws_s3_bucket",
            RetryableProviderError("throttled"), RetryableProviderError("throttled"),
        )
        
        report = _executor(provider, store, settings).apply(network_plan)
        
        assert report.success
        result = next(r for r in report.results if r.action_id == "create:aws_s3_bucket.logs")
        assert result.attempts == 3
    
    def test_retries_exhausted_is_fatal(self, network_plan, provider, store, settings):
        provider.cloud.inject_fault("create", "aws_s3_bucket", *[RetryableProviderError("throttled")] * 4)
        
        report = _executor(provider, store, settings).apply(network_plan)
        
        result = next(r for r in report.results if r.action_id == "create:aws_s3_bucket.logs")
        assert result.status == ActionStatus.FATAL
        assert result.attempts == 4
        assert "gave up after 4 attempts" in result.error
        assert store.get("aws_s3_bucket.logs") is None
    
    def test_fatal_is_not_retried(self, network_plan, provider, store, settings):
        provider.cloud.inject_fault("create", "aws_s3_bucket", FatalProviderError("bucket name taken"))
        
        report = _executor(provider, store, settings).apply(network_plan)
        
        result = next(r for r in report.results if r.action_id == "create:aws_s3_bucket.logs")
        assert result.attempts == 1
        assert result.error == "bucket name taken"


class TestFailures:
    """Test partial failure handling."""
    
    def test_failed_action_skips_dependents(self, network_plan, provider, store, settings):
        provider.cloud.inject_fault("create", "aws_vpc", FatalProviderError("quota exceeded"))
        
        report = _executor(provider, store, settings).apply(network_plan)
        
        assert not report.success
        assert _statuses(report) == {
            "create:aws_s3_bucket.logs": ActionStatus.SUCCEEDED,
            "create:aws_vpc.main_vpc": ActionStatus.FATAL,
            "create:aws_subnet.public_subnet": ActionStatus.SKIPPED,
        }
        assert report.skipped[0].blocked_by == "create:aws_vpc.main_vpc"
        assert [r.address for r in store.list()] == ["aws_s3_bucket.logs"]
    
    def test_rerun_after_failure_completes(self, network_plan, make_graph, network_doc, provider, store, settings):
        provider.cloud.inject_fault("create", "aws_vpc", FatalProviderError("quota exceeded"))
        _executor(provider, store, settings).apply(network_plan)
        
        plan = Planner(settings.kinds).plan(make_graph(network_doc), store.load())
        
        assert [a.id for a in plan.actions] == ["create:aws_vpc.main_vpc", "create:aws_subnet.public_subnet"]
        assert _executor(provider, store, settings).apply(plan).success
        assert len(store.list()) == 3
    
    def test_fail_fast_stops_scheduling(self, network_plan, provider, store, settings):
        provider.cloud.inject_fault("create", "aws_s3_bucket", FatalProviderError("denied"))
        
        report = _executor(provider, store, settings, parallelism=1, fail_fast=True).apply(network_plan)
        
        assert _statuses(report) == {
            "create:aws_s3_bucket.logs": ActionStatus.FATAL,
            "create:aws_vpc.main_vpc": ActionStatus.CANCELLED,
            "create:aws_subnet.public_subnet": ActionStatus.CANCELLED,
        }
        assert store.list() == []
    
    def test_state_write_failure_stops_run(self, network_plan, provider, settings):
        store = StateStore(FailingBackend(allowed=1))
        
        report = _executor(provider, store, settings, parallelism=1).apply(network_plan)
        
        statuses = _statuses(report)
        assert statuses["create:aws_s3_bucket.logs"] == ActionStatus.SUCCEEDED
        assert statuses["create:aws_vpc.main_vpc"] == ActionStatus.FATAL
        assert "state write failed" in report.failed[0].error
        assert statuses["create:aws_subnet.public_subnet"] == ActionStatus.SKIPPED


class TestConcurrency:
    """Test parallel scheduling and cancellation."""
    
    def test_independent_actions_run_concurrently(self, make_graph, settings, store):
        barrier = threading.Barrier(2, timeout=5)
        
        def hook(kind, attributes):
            barrier.wait()
        
        provider = HookedProvider(settings.kinds, hook)
        plan = Planner(settings.kinds).plan(make_graph({"resources": {
            "a": {"kind": "aws_s3_bucket", "attributes": {"bucket": "a"}},
            "b": {"kind": "aws_s3_bucket", "attributes": {"bucket": "b"}},
        }}), {})
        
        report = _executor(provider, store, settings, parallelism=2).apply(plan)
        
        assert report.success
    
    def test_parallelism_bound(self, make_graph, settings, store):
        lock = threading.Lock()
        active = {"now": 0, "peak": 0}
        release = threading.Event()
        
        def hook(kind, attributes):
            with lock:
                active["now"] += 1
                active["peak"] = max(active["peak"], active["now"])
                if active["peak"] >= 2:
                    release.set()
            release.wait(timeout=2)
            with lock:
                active["now"] -= 1
        
        provider = HookedProvider(settings.kinds, hook)
        doc = {"resources": {
            f"b{i}": {"kind": "aws_s3_bucket", "attributes": {"bucket": f"b{i}"}} for i in range(6)
        }}
        plan = Planner(settings.kinds).plan(make_graph(doc), {})
        
        report = _executor(provider, store, settings, parallelism=2).apply(plan)
        
        assert report.success
        assert active["peak"] == 2
    
    def test_cancel_lets_running_action_finish(self, network_plan, settings, store):
        executor = None
        
        def hook(kind, attributes):
            executor.cancel()
        
        provider = HookedProvider(settings.kinds, hook)
        executor = _executor(provider, store, settings, parallelism=1)
        
        report = executor.apply(network_plan)
        
        assert report.cancelled is True
        assert _statuses(report) == {
            "create:aws_s3_bucket.logs": ActionStatus.SUCCEEDED,
            "create:aws_vpc.main_vpc": ActionStatus.CANCELLED,
            "create:aws_subnet.public_subnet": ActionStatus.CANCELLED,
        }
        assert [r.address for r in store.list()] == ["aws_s3_bucket.logs"]
