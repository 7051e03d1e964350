"""Refresh recorded state against the provider to detect drift."""

from typing import Dict, List, Optional, Tuple
from .models import DriftEntry
from ..config.models import RetrySettings
from ..execute.retry import call_with_retry
from ..provider.base import Provider
from ..state.models import StateRecord
from ..utils.errors import ResourceNotFoundError
from ..utils.logging import get_logger

logger = get_logger("plan.refresh")


def refresh_records(
    records: Dict[str, StateRecord],
    provider: Provider,
    retry: Optional[RetrySettings] = None,
) -> Tuple[Dict[str, StateRecord], List[DriftEntry]]:
    """
    Read every recorded resource from the provider.
    
    Resources the provider no longer has are dropped from the returned
    view and reported as deleted drift; the planner recreates them when
    declared and deletes their record otherwise. Recorded attributes whose live
    value differs are replaced by the live value, so the planner
    converges them back with an update. The store itself is not modified.
    
    Returns:
        (refreshed records, drift entries in address order)
    """
    retry = retry or RetrySettings()
    refreshed: Dict[str, StateRecord] = {}
    drift: List[DriftEntry] = []
    
    for address in sorted(records):
        record = records[address]
        if not record.resource_id:
            refreshed[address] = record
            continue
        
        handler = provider.handler_for(record.kind)
        try:
            live = call_with_retry(handler.read, retry, record.resource_id)
        except ResourceNotFoundError:
            logger.warning(f"{address} no longer exists at the provider")
            drift.append(DriftEntry(address=address, status="deleted"))
            continue
        
        live_attributes = live.get("attributes", {})
        drifted = sorted(
            name for name, value in record.attributes.items()
            if name in live_attributes and live_attributes[name] != value
        )
        if drifted:
            logger.info(f"{address} drifted: {', '.join(drifted)}")
            drift.append(DriftEntry(address=address, status="changed", attributes=drifted))
            attributes = dict(record.attributes)
            attributes.update({name: live_attributes[name] for name in drifted})
            record = record.model_copy(update={"attributes": attributes})
        
        outputs = live.get("outputs")
        if outputs:
            record = record.model_copy(update={"outputs": {**record.outputs, **outputs}})
        refreshed[address] = record
    
    return refreshed, drift
