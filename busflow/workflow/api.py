"""Workflow protocol on top of the Event Bus: INIT -> SUBMIT -> STATE.CHANGE.

Each execution owns one ephemeral subscription to WF.<workflow>.STATE.CHANGE,
registered under its registration id. STATE.CHANGE values are classified as
success, error or progress; a terminal value invokes the matching callback and
then removes the subscription. Nothing times out: an execution that never sees
a terminal value waits until cancelled.
"""

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable

from busflow.events.scoped import generate_subscription_id
from busflow.events.topics import WorkflowTopics
from busflow.workflow.models import (
    ExecutionState,
    WorkflowCallbacks,
    WorkflowConfig,
    WorkflowHeader,
)

if TYPE_CHECKING:
    from busflow.events.bus import EventBus
    from busflow.events.models import Event

logger = logging.getLogger(__name__)


def generate_registration_id(workflow_name: str) -> str:
    """<workflow>.<epoch ms>.<random>. Collisions are possible and not defended against."""
    return generate_subscription_id(prefix=workflow_name)


def _inner_data(payload: Any) -> Any:
    """payload["event"]["data"] of a STATE.CHANGE payload, or None."""
    if not isinstance(payload, Mapping):
        return None
    event = payload.get("event")
    if isinstance(event, Mapping):
        return event.get("data")
    return None


def _coerce_config(config: WorkflowConfig | Mapping[str, Any] | None) -> WorkflowConfig:
    if config is None:
        return WorkflowConfig()
    if isinstance(config, WorkflowConfig):
        return config
    return WorkflowConfig.model_validate(dict(config))


class WorkflowExecution:
    """One run of a workflow, alive while its STATE.CHANGE subscription is."""

    def __init__(
        self,
        bus: "EventBus",
        workflow_name: str,
        callbacks: WorkflowCallbacks | None = None,
        config: WorkflowConfig | None = None,
        on_finished: Callable[["WorkflowExecution"], None] | None = None,
    ) -> None:
        cfg = config or WorkflowConfig()
        self._bus = bus
        self.config = cfg
        self.workflow = workflow_name
        self.registration_id = generate_registration_id(workflow_name)
        self._callbacks = callbacks or WorkflowCallbacks()
        self._success_states = tuple(cfg.success_states)
        self._error_states = tuple(cfg.error_states)
        self._on_finished = on_finished
        self._state = ExecutionState.CREATED
        self._cleaned_up = False

    @property
    def state(self) -> ExecutionState:
        return self._state

    @property
    def active(self) -> bool:
        """True while the execution's subscription is registered on the bus."""
        return not self._cleaned_up and self._bus.is_subscribed(self.registration_id)

    def _header(self, event_type: str) -> dict[str, str]:
        return WorkflowHeader(
            registration_id=self.registration_id,
            workflow=self.workflow,
            event_type=event_type,
        ).to_wire()

    def start(self, params: Any = None) -> "WorkflowExecution":
        """Subscribe for state changes, then publish INIT and SUBMIT.

        If the bus rejects the subscription (destroyed bus, id already taken),
        nothing is published and the execution ends up CANCELLED.
        """
        if self._state is not ExecutionState.CREATED:
            raise RuntimeError(
                f"Workflow execution {self.registration_id} already started"
            )
        taken = self._bus.is_subscribed(self.registration_id)
        self._bus.subscribe(
            self.registration_id,
            WorkflowTopics.state_change(self.workflow),
            self._on_state_change,
        )
        if taken or not self._bus.is_subscribed(self.registration_id):
            # Rejected registration; the id, if live, belongs to someone else.
            logger.warning(
                "Workflow %s: subscription rejected; execution not started",
                self.registration_id,
            )
            self._state = ExecutionState.CANCELLED
            self._cleaned_up = True
            if self._on_finished:
                self._on_finished(self)
            return self
        # Handlers may answer synchronously while SUBMIT is being delivered.
        self._state = ExecutionState.AWAITING_STATE
        self._bus.publish(
            WorkflowTopics.init(self.workflow),
            {"header": self._header(WorkflowTopics.INIT)},
        )
        self._bus.publish(
            WorkflowTopics.submit(self.workflow),
            {"header": self._header(WorkflowTopics.SUBMIT), "body": params},
        )
        return self

    def cancel(self) -> None:
        """Drop the subscription without invoking any callback. Idempotent."""
        if not self._state.terminal:
            self._state = ExecutionState.CANCELLED
        self._cleanup()

    def _on_state_change(
        self,
        subscription_id: str,
        topic: str,
        data: Any,
        closure: Any = None,
        custom_data: Any = None,
    ) -> None:
        if self._state.terminal:
            logger.debug(
                "Workflow %s: ignoring %s after terminal state %s",
                self.registration_id,
                topic,
                self._state.value,
            )
            return
        state = data.get("value") if isinstance(data, Mapping) else None

        if state in self._success_states:
            self._state = ExecutionState.SUCCEEDED
            if self._callbacks.on_success:
                self._callbacks.on_success(_inner_data(data))
            self._cleanup()
        elif state in self._error_states:
            self._state = ExecutionState.FAILED
            if self._callbacks.on_error:
                inner = _inner_data(data)
                self._callbacks.on_error(data if inner is None else inner)
            self._cleanup()
        else:
            logger.debug("Workflow %s progress: %s", self.registration_id, state)
            if self._callbacks.on_progress:
                self._callbacks.on_progress(state, data)

    def _cleanup(self) -> None:
        if self._cleaned_up:
            return
        self._cleaned_up = True
        self._bus.unsubscribe(self.registration_id)
        logger.debug("Workflow %s finished: %s", self.registration_id, self._state.value)
        if self._on_finished:
            self._on_finished(self)

    def __repr__(self) -> str:
        return f"<WorkflowExecution {self.registration_id} {self._state.value}>"


class WorkflowAPI:
    """Runs executions of one named workflow and tracks the live ones."""

    def __init__(self, bus: "EventBus", workflow_name: str) -> None:
        self._bus = bus
        self.workflow_name = workflow_name
        self._executions: dict[str, WorkflowExecution] = {}

    @property
    def active_executions(self) -> list[WorkflowExecution]:
        return list(self._executions.values())

    def execute(
        self,
        params: Any = None,
        callbacks: WorkflowCallbacks | None = None,
        config: WorkflowConfig | Mapping[str, Any] | None = None,
    ) -> WorkflowExecution:
        """Start an execution. Callbacks fire from inside a later publish()."""
        execution = WorkflowExecution(
            self._bus,
            self.workflow_name,
            callbacks,
            _coerce_config(config),
            on_finished=self._forget,
        )
        self._executions.setdefault(execution.registration_id, execution)
        return execution.start(params)

    def cancel(self) -> None:
        """Cancel every execution of this API that is still running."""
        for execution in list(self._executions.values()):
            execution.cancel()

    def _forget(self, execution: WorkflowExecution) -> None:
        if self._executions.get(execution.registration_id) is execution:
            del self._executions[execution.registration_id]


class WorkflowBuilder:
    """Fluent front end for WorkflowAPI.execute."""

    def __init__(self, bus: "EventBus", workflow_name: str) -> None:
        self._bus = bus
        self._workflow_name = workflow_name
        self._params: Any = {}
        self._callbacks = WorkflowCallbacks()
        self._config: WorkflowConfig | Mapping[str, Any] | None = None

    def with_params(self, params: Any) -> "WorkflowBuilder":
        self._params = params
        return self

    def on_success(self, callback: Callable[[Any], None]) -> "WorkflowBuilder":
        self._callbacks.on_success = callback
        return self

    def on_error(self, callback: Callable[[Any], None]) -> "WorkflowBuilder":
        self._callbacks.on_error = callback
        return self

    def on_progress(self, callback: Callable[[Any, Any], None]) -> "WorkflowBuilder":
        self._callbacks.on_progress = callback
        return self

    def with_config(self, config: WorkflowConfig | Mapping[str, Any]) -> "WorkflowBuilder":
        self._config = config
        return self

    def execute(self) -> WorkflowExecution:
        api = WorkflowAPI(self._bus, self._workflow_name)
        return api.execute(self._params, self._callbacks, self._config)


def workflow(bus: "EventBus", workflow_name: str) -> WorkflowBuilder:
    """Start a fluent workflow call: workflow(bus, "payment").with_params(...).execute()."""
    return WorkflowBuilder(bus, workflow_name)


def report_state(
    bus: "EventBus",
    workflow_name: str,
    value: str,
    data: Any = None,
    metadata: Mapping[str, Any] | None = None,
) -> "Event":
    """Publish a STATE.CHANGE for a workflow (the handler side of the protocol)."""
    return bus.publish(
        WorkflowTopics.state_change(workflow_name),
        {"value": value, "event": {"data": data}},
        metadata,
    )
