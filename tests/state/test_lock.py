"""Tests for state locking."""

import json
import pytest
from converge.state.lock import FileLock, ProcessLock, StateLock, force_unlock, make_lock
from converge.utils.errors import ConfigError, StateLockError


class TestFileLock:
    
    def test_second_holder_rejected(self, tmp_path):
        state = str(tmp_path / "state.json")
        
        with FileLock(state):
            with pytest.raises(StateLockError, match="converge state unlock"):
                FileLock(state).acquire()
        
        assert not (tmp_path / "state.json.lock").exists()
    
    def test_lock_file_describes_holder(self, tmp_path):
        state = str(tmp_path / "state.json")
        lock = FileLock(state)
        lock.acquire(operation="destroy")
        try:
            info = json.loads((tmp_path / "state.json.lock").read_text())
            assert info["operation"] == "destroy"
            with pytest.raises(StateLockError, match="destroy"):
                FileLock(state).acquire()
        finally:
            lock.release()
    
    def test_force_unlock(self, tmp_path):
        state = str(tmp_path / "state.json")
        FileLock(state).acquire()
        
        assert force_unlock(state) is True
        assert force_unlock(state) is False
        with FileLock(state):
            pass
    
    def test_released_on_error(self, tmp_path):
        state = str(tmp_path / "state.json")
        
        with pytest.raises(RuntimeError):
            with FileLock(state):
                raise RuntimeError("boom")
        
        assert not (tmp_path / "state.json.lock").exists()


class TestProcessLock:
    
    def test_same_path_excluded(self, tmp_path):
        state = str(tmp_path / "state.json")
        
        with ProcessLock(state):
            with pytest.raises(StateLockError):
                ProcessLock(state).acquire()
        with ProcessLock(state):
            pass
    
    def test_different_paths_independent(self, tmp_path):
        with ProcessLock(str(tmp_path / "a.json")):
            with ProcessLock(str(tmp_path / "b.json")):
                pass


class TestMakeLock:
    
    def test_modes(self, tmp_path):
        state = str(tmp_path / "state.json")
        
        assert isinstance(make_lock("file", state), FileLock)
        assert isinstance(make_lock("process", state), ProcessLock)
        assert type(make_lock("none", state)) is StateLock
    
    def test_unknown_mode(self, tmp_path):
        with pytest.raises(ConfigError):
            make_lock("etcd", str(tmp_path / "state.json"))
