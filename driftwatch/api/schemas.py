from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

# ──────────────────────────────────────────────
# Request Schemas
# ──────────────────────────────────────────────

class MonitorForm(BaseModel):
    """Create/update form fields, exactly as submitted."""
    cadence: str = ""
    metric: str = ""
    mode: str = ""
    threshold_lower: str = ""
    threshold_upper: str = ""
    title: str = ""
    email: str = ""
    webhook: str = ""

# ──────────────────────────────────────────────
# Response Schemas
# ──────────────────────────────────────────────

class MethodOut(BaseModel):
    kind: str
    target: Optional[str] = None

class MonitorOut(BaseModel):
    model_config = {"protected_namespaces": ()}

    id: str
    model_id: str
    title: str
    cadence: str
    metric: str
    mode: str
    variance_lower: Optional[float] = None
    variance_upper: Optional[float] = None
    methods: List[MethodOut] = []
    created_at: datetime
    last_evaluated_window_end: datetime

class EvaluationOut(BaseModel):
    id: int
    window_start: datetime
    window_end: datetime
    status: str
    metric_value: Optional[float] = None
    baseline_value: Optional[float] = None
    variance: Optional[float] = None
    outcome: Optional[str] = None
    direction: Optional[str] = None
    sample_count: int = 0
    alert_id: Optional[int] = None

    class Config:
        from_attributes = True

class FormErrorResponse(BaseModel):
    model_config = {"protected_namespaces": ()}

    error: str
    monitor_id: Optional[str] = None
    model_type: Optional[str] = None
    form: Dict[str, Any] = {}
