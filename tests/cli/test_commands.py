"""Tests for CLI commands."""

import json
import pytest
import yaml
from click.testing import CliRunner
from converge.cli.main import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def decl_file(isolated_home, network_doc):
    """Declarations in the working directory; state and cloud land there too."""
    path = isolated_home / "main.yaml"
    path.write_text(yaml.safe_dump(network_doc))
    return path


@pytest.fixture
def applied(runner, decl_file):
    result = runner.invoke(cli, ['apply', str(decl_file), '--auto-approve'])
    assert result.exit_code == 0, result.output
    return decl_file


class TestPlanCommand:
    """Test plan output and exit codes."""
    
    def test_changes_pending_exit_code(self, runner, decl_file):
        result = runner.invoke(cli, ['plan', str(decl_file)])
        
        assert result.exit_code == 2
        assert "Plan: 3 to create, 0 to update, 0 to delete, 0 to replace." in result.output
    
    def test_no_changes_exit_code(self, runner, applied):
        result = runner.invoke(cli, ['plan', str(applied)])
        
        assert result.exit_code == 0
        assert "No changes." in result.output
    
    def test_json_output(self, runner, decl_file, tmp_path):
        out = tmp_path / "plan.json"
        result = runner.invoke(cli, ['plan', str(decl_file), '--json', '--output', str(out)])
        
        assert result.exit_code == 2
        data = json.loads(out.read_text())
        assert [a["id"] for a in data["actions"]][0] == "create:aws_s3_bucket.logs"
        assert data["actions"][2]["depends_on"] == ["create:aws_vpc.main_vpc"]
    
    def test_missing_file(self, runner):
        result = runner.invoke(cli, ['plan', 'nope.yaml'])
        
        assert result.exit_code == 1
        assert "Error:" in result.output
    
    def test_cycle_is_an_error(self, runner, isolated_home):
        path = isolated_home / "cycle.yaml"
        path.write_text(yaml.safe_dump({"resources": {
            "a": {"kind": "aws_security_group", "attributes": {"peer": "${b.id}"}},
            "b": {"kind": "aws_security_group", "attributes": {"peer": "${a.id}"}},
        }}))
        
        result = runner.invoke(cli, ['plan', str(path)])
        
        assert result.exit_code == 1
        assert "Dependency cycle detected" in result.output
        assert not (isolated_home / ".converge" / "simulated-cloud.json").exists()
    
    def test_refresh_reports_drift(self, runner, applied, isolated_home):
        cloud_path = isolated_home / ".converge" / "simulated-cloud.json"
        cloud = json.loads(cloud_path.read_text())
        bucket_id = next(k for k, v in cloud["resources"].items() if v["kind"] == "aws_s3_bucket")
        del cloud["resources"][bucket_id]
        cloud_path.write_text(json.dumps(cloud))
        
        result = runner.invoke(cli, ['plan', str(applied), '--refresh'])
        
        assert result.exit_code == 2
        assert "aws_s3_bucket.logs was deleted outside converge" in result.output


class TestApplyCommand:
    """Test apply and destroy."""
    
    def test_apply_writes_state(self, runner, applied, isolated_home):
        state = json.loads((isolated_home / "converge.state.json").read_text())
        
        assert sorted(state["records"]) == ["aws_s3_bucket.logs", "aws_subnet.public_subnet", "aws_vpc.main_vpc"]
        assert not (isolated_home / "converge.state.json.lock").exists()
    
    def test_apply_reports_summary(self, runner, decl_file):
        result = runner.invoke(cli, ['apply', str(decl_file), '-y'])
        
        assert "Apply complete! 3 action(s) applied." in result.output
    
    def test_declined_confirmation(self, runner, decl_file, isolated_home):
        result = runner.invoke(cli, ['apply', str(decl_file)], input="n\n")
        
        assert result.exit_code == 1
        assert "Apply cancelled." in result.output
        assert not (isolated_home / "converge.state.json").exists()
    
    def test_locked_state(self, runner, decl_file, isolated_home):
        (isolated_home / "converge.state.json.lock").write_text("{}")
        
        result = runner.invoke(cli, ['apply', str(decl_file), '-y'])
        
        assert result.exit_code == 1
        assert "State is locked" in result.output
    
    def test_lock_mode_override(self, runner, decl_file, isolated_home):
        (isolated_home / "converge.state.json.lock").write_text("{}")
        
        result = runner.invoke(cli, ['apply', str(decl_file), '-y', '--lock', 'none'])
        
        assert result.exit_code == 0
    
    def test_destroy(self, runner, applied):
        result = runner.invoke(cli, ['destroy', '--auto-approve'])
        
        assert result.exit_code == 0
        assert "DESTROY PLAN" in result.output
        listing = runner.invoke(cli, ['state', 'list'])
        assert "State is empty." in listing.output
    
    def test_destroy_nothing(self, runner):
        result = runner.invoke(cli, ['destroy', '-y'])
        
        assert result.exit_code == 0
        assert "No changes." in result.output
    
    def test_custom_state_path(self, runner, decl_file, isolated_home):
        result = runner.invoke(cli, ['apply', str(decl_file), '-y', '--state', 'envs/dev.json'])
        
        assert result.exit_code == 0
        assert (isolated_home / "envs" / "dev.json").exists()


class TestOtherCommands:
    """Test validate, graph, state and version."""
    
    def test_validate(self, runner, decl_file):
        result = runner.invoke(cli, ['validate', str(decl_file)])
        
        assert result.exit_code == 0
        assert "Declarations are valid: 3 resources, 1 dependencies." in result.output
        assert "  aws_vpc: 1" in result.output
    
    def test_validate_bad_reference(self, runner, isolated_home):
        path = isolated_home / "bad.yaml"
        path.write_text(yaml.safe_dump({"resources": {
            "subnet": {"kind": "aws_subnet", "attributes": {"vpc_id": "${vpc.id}"}},
        }}))
        
        result = runner.invoke(cli, ['validate', str(path)])
        
        assert result.exit_code == 1
        assert "undeclared resource 'vpc'" in result.output
    
    def test_graph(self, runner, decl_file):
        result = runner.invoke(cli, ['graph', str(decl_file)])
        
        assert result.exit_code == 0
        assert '"public_subnet" -> "main_vpc";' in result.output
    
    def test_state_list_and_show(self, runner, applied):
        listing = runner.invoke(cli, ['state', 'list'])
        shown = runner.invoke(cli, ['state', 'show', 'aws_vpc.main_vpc'])
        
        assert "aws_vpc.main_vpc\tvpc-" in listing.output
        record = json.loads(shown.output)
        assert record["attributes"]["cidr_block"] == "10.0.0.0/16"
    
    def test_state_show_unknown(self, runner, applied):
        result = runner.invoke(cli, ['state', 'show', 'aws_vpc.other'])
        
        assert result.exit_code == 1
        assert "No state record" in result.output
    
    def test_state_unlock(self, runner, isolated_home):
        (isolated_home / "converge.state.json.lock").write_text("{}")
        
        result = runner.invoke(cli, ['state', 'unlock'])
        
        assert "Removed lock" in result.output
        assert not (isolated_home / "converge.state.json.lock").exists()
    
    def test_version(self, runner):
        result = runner.invoke(cli, ['version'])
        
        assert result.exit_code == 0
        assert "converge version" in result.output
    
    def test_project_config_is_used(self, runner, decl_file, isolated_home):
        (isolated_home / ".converge").mkdir(exist_ok=True)
        (isolated_home / ".converge" / "config.yaml").write_text("state:\n  path: project.state.json\n")
        
        result = runner.invoke(cli, ['apply', str(decl_file), '-y'])
        
        assert result.exit_code == 0
        assert (isolated_home / "project.state.json").exists()
