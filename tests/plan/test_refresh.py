"""Tests for drift detection during planning."""

import yaml
from converge import apply_plan, plan_changes
from converge.plan.refresh import refresh_records


def _write(path, doc):
    path.write_text(yaml.safe_dump(doc))
    return str(path)


class TestRefresh:
    """Test refresh of recorded state against the provider."""
    
    def test_changed_outside_is_reverted(self, tmp_path, network_doc, workspace, provider, store):
        decl = _write(tmp_path / "main.yaml", network_doc)
        assert apply_plan(plan_changes(decl, workspace), workspace).success
        vpc_id = store.get("aws_vpc.main_vpc").resource_id
        provider.cloud.resources[vpc_id]["attributes"]["tags"] = {"Name": "edited"}
        
        plan = plan_changes(decl, workspace, refresh=True)
        
        assert [(d.address, d.status, d.attributes) for d in plan.drift] == [
            ("aws_vpc.main_vpc", "changed", ["tags"]),
        ]
        assert [a.id for a in plan.actions] == ["update:aws_vpc.main_vpc"]
        assert plan.actions[0].changes[0].before == {"Name": "edited"}
    
    def test_deleted_outside_is_recreated(self, tmp_path, network_doc, workspace, provider, store):
        decl = _write(tmp_path / "main.yaml", network_doc)
        assert apply_plan(plan_changes(decl, workspace), workspace).success
        provider.cloud.remove(store.get("aws_s3_bucket.logs").resource_id)
        
        plan = plan_changes(decl, workspace, refresh=True)
        
        assert plan.drift[0].status == "deleted"
        assert [a.id for a in plan.actions] == ["create:aws_s3_bucket.logs"]
    
    def test_without_refresh_drift_is_invisible(self, tmp_path, network_doc, workspace, provider, store):
        decl = _write(tmp_path / "main.yaml", network_doc)
        assert apply_plan(plan_changes(decl, workspace), workspace).success
        provider.cloud.remove(store.get("aws_s3_bucket.logs").resource_id)
        
        plan = plan_changes(decl, workspace)
        
        assert not plan.has_changes
        assert plan.drift == []
    
    def test_refresh_does_not_write_state(self, tmp_path, network_doc, workspace, provider, store, settings):
        decl = _write(tmp_path / "main.yaml", network_doc)
        assert apply_plan(plan_changes(decl, workspace), workspace).success
        serial = store.serial
        provider.cloud.remove(store.get("aws_s3_bucket.logs").resource_id)
        
        refreshed, drift = refresh_records(store.load(), provider, settings.retry)
        
        assert "aws_s3_bucket.logs" not in refreshed
        assert store.serial == serial
        assert store.get("aws_s3_bucket.logs") is not None
    
    def test_reverted_change_reaches_the_provider(self, tmp_path, network_doc, workspace, provider, store):
        decl = _write(tmp_path / "main.yaml", network_doc)
        assert apply_plan(plan_changes(decl, workspace), workspace).success
        vpc_id = store.get("aws_vpc.main_vpc").resource_id
        provider.cloud.resources[vpc_id]["attributes"]["tags"] = {"Name": "edited"}
        
        report = apply_plan(plan_changes(decl, workspace, refresh=True), workspace)
        
        assert report.success
        assert provider.cloud.resources[vpc_id]["attributes"]["tags"] == {"Name": "main"}
        assert ("update", "aws_vpc", vpc_id) in provider.cloud.calls
        assert not plan_changes(decl, workspace, refresh=True).has_changes
    
    def test_destroy_forgets_resource_deleted_outside(self, tmp_path, network_doc, workspace, provider, store):
        decl = _write(tmp_path / "main.yaml", network_doc)
        assert apply_plan(plan_changes(decl, workspace), workspace).success
        provider.cloud.remove(store.get("aws_s3_bucket.logs").resource_id)
        
        plan = plan_changes(None, workspace, destroy=True, refresh=True)
        
        assert "delete:aws_s3_bucket.logs" in [a.id for a in plan.actions]
        assert apply_plan(plan, workspace).success
        assert store.load() == {}
    
    def test_undeclared_resource_deleted_outside_is_dropped_from_state(self, tmp_path, network_doc, workspace, provider, store):
        decl = _write(tmp_path / "main.yaml", network_doc)
        assert apply_plan(plan_changes(decl, workspace), workspace).success
        provider.cloud.remove(store.get("aws_s3_bucket.logs").resource_id)
        del network_doc["resources"]["logs"]
        decl = _write(tmp_path / "main.yaml", network_doc)
        
        plan = plan_changes(decl, workspace, refresh=True)
        
        assert [a.id for a in plan.actions] == ["delete:aws_s3_bucket.logs"]
        assert apply_plan(plan, workspace).success
        assert store.get("aws_s3_bucket.logs") is None
        assert not plan_changes(decl, workspace, refresh=True).has_changes
