"""Per-action results and the apply report."""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class ActionStatus(str, Enum):
    """Outcome of one planned action."""
    SUCCEEDED = "SUCCEEDED"
    RETRYABLE = "RETRYABLE"
    FATAL = "FATAL"
    SKIPPED = "SKIPPED"
    CANCELLED = "CANCELLED"


class ActionResult(BaseModel):
    """Result of running (or not running) one action."""
    action_id: str = Field(..., description="Planned action id")
    address: str = Field(..., description="Resource address")
    status: ActionStatus = Field(..., description="Outcome")
    error: Optional[str] = Field(None, description="Error message for RETRYABLE/FATAL")
    attempts: int = Field(default=0, ge=0, description="Provider attempts made")
    blocked_by: Optional[str] = Field(None, description="Failed upstream action id for SKIPPED")
    
    class Config:
        use_enum_values = True
    
    @property
    def ok(self) -> bool:
        return self.status == ActionStatus.SUCCEEDED


class ApplyReport(BaseModel):
    """What an apply run did, in plan order."""
    results: List[ActionResult] = Field(default_factory=list)
    cancelled: bool = Field(default=False, description="Run was cancelled before finishing")
    
    def _with_status(self, status: ActionStatus) -> List[ActionResult]:
        return [r for r in self.results if r.status == status]
    
    @property
    def applied(self) -> List[ActionResult]:
        return self._with_status(ActionStatus.SUCCEEDED)
    
    @property
    def failed(self) -> List[ActionResult]:
        return self._with_status(ActionStatus.FATAL)
    
    @property
    def skipped(self) -> List[ActionResult]:
        return self._with_status(ActionStatus.SKIPPED)
    
    @property
    def not_started(self) -> List[ActionResult]:
        return self._with_status(ActionStatus.CANCELLED)
    
    @property
    def success(self) -> bool:
        return all(r.ok for r in self.results)
    
    def summary(self) -> Dict[str, int]:
        return {
            "applied": len(self.applied),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
            "cancelled": len(self.not_started),
        }
