"""Workflow protocol models: config, callbacks, request header, execution state."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field

from busflow.settings import get_setting

_DEFAULT_SUCCESS_STATES = ["success"]
_DEFAULT_ERROR_STATES = ["error", "failure"]


class ExecutionState(str, Enum):
    CREATED = "created"
    AWAITING_STATE = "awaiting_state"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (
            ExecutionState.SUCCEEDED,
            ExecutionState.FAILED,
            ExecutionState.CANCELLED,
        )


class WorkflowConfig(BaseModel):
    """How STATE.CHANGE values are classified for one execution.

    Only success_states and error_states drive the protocol. workflow,
    datasource and response_mapping are caller metadata: validated and kept on
    WorkflowExecution.config for handlers and callbacks, never read by the core.
    """

    workflow: str | None = None
    datasource: str | None = None
    success_states: list[str] = Field(default_factory=lambda: list(_DEFAULT_SUCCESS_STATES))
    error_states: list[str] = Field(default_factory=lambda: list(_DEFAULT_ERROR_STATES))
    response_mapping: Any = None

    @classmethod
    def from_settings(cls, settings: dict[str, Any], **overrides: Any) -> "WorkflowConfig":
        """Config with state sets taken from the workflow section of settings."""
        data = {
            "success_states": get_setting(
                settings, "workflow.success_states", _DEFAULT_SUCCESS_STATES
            ),
            "error_states": get_setting(settings, "workflow.error_states", _DEFAULT_ERROR_STATES),
        }
        data.update(overrides)
        return cls.model_validate(data)


class WorkflowHeader(BaseModel):
    """Header of INIT/SUBMIT payloads. Serialized with camelCase wire names."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    registration_id: str = Field(alias="registrationId")
    workflow: str
    event_type: Literal["INIT", "SUBMIT"] = Field(alias="eventType")

    def to_wire(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


@dataclass
class WorkflowCallbacks:
    """Caller hooks. Any of them may be omitted."""

    on_success: Callable[[Any], None] | None = None
    on_error: Callable[[Any], None] | None = None
    on_progress: Callable[[Any, Any], None] | None = None
