"""Shared fixtures: isolated config, simulated provider and in-memory state."""

import pytest
import yaml
from converge import Workspace
from converge.config import EngineSettings, get_defaults_path
from converge.graph.resource_graph import build_graph
from converge.ingest.declaration_loader import declarations_from_dict
from converge.provider import SimulatedProvider
from converge.state.backends import MemoryBackend
from converge.state.store import StateStore


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep ~/.converge and ./.converge out of the tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    return workdir


@pytest.fixture
def settings():
    """Packaged defaults with zero retry delay."""
    with open(get_defaults_path(), 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    data["retry"]["initial_delay"] = 0
    data["retry"]["max_delay"] = 0
    data["state"]["lock"] = "process"
    return EngineSettings(**data)


@pytest.fixture
def provider(settings):
    return SimulatedProvider(schemas=settings.kinds)


@pytest.fixture
def store():
    return StateStore(MemoryBackend())


@pytest.fixture
def workspace(settings, provider, store):
    return Workspace(settings, provider=provider, store=store)


@pytest.fixture
def network_doc():
    """VPC, subnet referencing it, and an unrelated bucket."""
    return {
        "resources": {
            "main_vpc": {
                "kind": "aws_vpc",
                "attributes": {"cidr_block": "10.0.0.0/16", "tags": {"Name": "main"}},
            },
            "public_subnet": {
                "kind": "aws_subnet",
                "attributes": {
                    "vpc_id": "${main_vpc.id}",
                    "cidr_block": "10.0.1.0/24",
                    "availability_zone": "us-east-1a",
                },
            },
            "logs": {
                "kind": "aws_s3_bucket",
                "attributes": {"bucket": "acme-logs"},
            },
        }
    }


@pytest.fixture
def make_graph(settings):
    """Build a graph from an in-memory declaration document."""
    def _make(doc):
        return build_graph(declarations_from_dict(doc), settings.kinds)
    return _make
