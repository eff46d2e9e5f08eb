"""Classification and state color maps."""

from reclaim_guard.models import PolicyClassification
from reclaim_guard.models.cycle import ResourceState

CLASSIFICATION_COLORS: dict[PolicyClassification, str] = {
    PolicyClassification.BENIGN: "dim",
    PolicyClassification.CORRECTABLE: "yellow",
    PolicyClassification.BLOCKED: "red bold",
}

STATE_COLORS: dict[ResourceState, str] = {
    ResourceState.IN_SYNC: "green",
    ResourceState.DRIFT_DETECTED: "yellow",
    ResourceState.CORRECTING: "cyan",
    ResourceState.BLOCKED: "red bold",
}


def styled_classification(classification: PolicyClassification) -> str:
    color = CLASSIFICATION_COLORS.get(classification, "white")
    return f"[{color}]{classification.value}[/{color}]"


def styled_state(state: ResourceState) -> str:
    color = STATE_COLORS.get(state, "white")
    return f"[{color}]{state.value}[/{color}]"
