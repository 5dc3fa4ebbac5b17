"""Workflow protocol: INIT -> SUBMIT -> STATE.CHANGE over the Event Bus."""

from busflow.workflow.api import (
    WorkflowAPI,
    WorkflowBuilder,
    WorkflowExecution,
    report_state,
    workflow,
)
from busflow.workflow.models import (
    ExecutionState,
    WorkflowCallbacks,
    WorkflowConfig,
    WorkflowHeader,
)

__all__ = [
    "ExecutionState",
    "WorkflowAPI",
    "WorkflowBuilder",
    "WorkflowCallbacks",
    "WorkflowConfig",
    "WorkflowExecution",
    "WorkflowHeader",
    "report_state",
    "workflow",
]
