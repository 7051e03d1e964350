"""Pydantic models for engine settings."""

from enum import Enum
from typing import Dict
from pydantic import BaseModel, Field
from ..provider.base import KindSchema


class LockMode(str, Enum):
    """How concurrent runs against one state target are excluded."""
    FILE = "file"
    PROCESS = "process"
    NONE = "none"


class RetrySettings(BaseModel):
    """Bounded exponential backoff for retryable provider errors."""
    max_attempts: int = Field(default=4, ge=1, description="Attempts per action, including the first")
    initial_delay: float = Field(default=0.5, ge=0, description="Delay before the first retry (seconds)")
    max_delay: float = Field(default=8.0, ge=0, description="Upper bound for a single backoff delay")
    multiplier: float = Field(default=2.0, ge=1, description="Backoff growth factor")


class StateSettings(BaseModel):
    """Where state is persisted and how it is locked."""
    path: str = Field(default="converge.state.json", description="State blob path")
    lock: LockMode = Field(default=LockMode.FILE, description="Lock mode: file, process or none")
    backup: bool = Field(default=True, description="Keep previous blob as <path>.backup")
    
    class Config:
        use_enum_values = True


class ProviderSettings(BaseModel):
    """Provider selection."""
    type: str = Field(default="simulated", description="Provider type")
    path: str = Field(default=".converge/simulated-cloud.json", description="Simulated cloud file")


class EngineSettings(BaseModel):
    """Validated engine configuration."""
    parallelism: int = Field(default=4, ge=1, description="Worker pool size for apply")
    fail_fast: bool = Field(default=False, description="Stop scheduling after the first fatal failure")
    refresh: bool = Field(default=False, description="Read live attributes before planning")
    retry: RetrySettings = Field(default_factory=RetrySettings)
    state: StateSettings = Field(default_factory=StateSettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    kinds: Dict[str, KindSchema] = Field(default_factory=dict, description="Kind schemas by resource kind")
