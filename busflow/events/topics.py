"""Workflow topic scheme and envelope field names.

Topics are dot-separated uppercase segments by convention; the bus does not
enforce it. Payload shapes are not validated by the core.
"""


class WorkflowTopics:
    """Fixed topic scheme of the workflow protocol: WF.<workflow>.<event>."""

    PREFIX = "WF"
    INIT = "INIT"
    SUBMIT = "SUBMIT"
    STATE_CHANGE = "STATE.CHANGE"

    @classmethod
    def init(cls, workflow: str) -> str:
        return f"{cls.PREFIX}.{workflow}.{cls.INIT}"

    @classmethod
    def submit(cls, workflow: str) -> str:
        return f"{cls.PREFIX}.{workflow}.{cls.SUBMIT}"

    @classmethod
    def state_change(cls, workflow: str) -> str:
        return f"{cls.PREFIX}.{workflow}.{cls.STATE_CHANGE}"

    @classmethod
    def all_events(cls, workflow: str) -> str:
        """Wildcard pattern covering every topic of one workflow."""
        return f"{cls.PREFIX}.{workflow}.*"


# Envelope contracts (documentation)
WORKFLOW_REQUEST_PAYLOAD = {
    "header": {"registrationId": "str", "workflow": "str", "eventType": "INIT | SUBMIT"},
    "body": "Any (SUBMIT only)",
}
STATE_CHANGE_PAYLOAD = {"value": "str", "event": {"data": "Any"}}
