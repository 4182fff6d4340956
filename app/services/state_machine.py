import enum

from app.exceptions import InvalidStateError
from app.models.tasks import AssignStatus


class AssignAction(str, enum.Enum):
    CREATE = "create"
    ACCEPT = "accept"
    REJECT = "reject"
    EDIT = "edit"
    DELETE = "delete"


ANY_STATE = frozenset(AssignStatus)

# Action -> statuses the action may start from. Edit and delete are allowed
# from every status, including deleted.
ALLOWED_SOURCES: dict[AssignAction, frozenset] = {
    AssignAction.ACCEPT: frozenset({AssignStatus.REQUESTED}),
    AssignAction.REJECT: frozenset({AssignStatus.REQUESTED}),
    AssignAction.EDIT: ANY_STATE,
    AssignAction.DELETE: ANY_STATE,
}

# Fixed target status per action; edit keeps whatever the patch says
TARGETS: dict[AssignAction, AssignStatus] = {
    AssignAction.ACCEPT: AssignStatus.ASSIGNED,
    AssignAction.REJECT: AssignStatus.REJECTED,
    AssignAction.DELETE: AssignStatus.DELETED,
}


def initial_status(already_collaborators: bool) -> AssignStatus:
    return AssignStatus.ASSIGNED if already_collaborators else AssignStatus.REQUESTED


def can_transition(action: AssignAction, current) -> bool:
    return AssignStatus(current) in ALLOWED_SOURCES[action]


def check_transition(action: AssignAction, current) -> AssignStatus | None:
    """Validate `action` from `current`; return the fixed target status if the action has one."""
    if not can_transition(action, current):
        raise InvalidStateError(
            f"Task is not in requested state (cannot {action.value} a '{AssignStatus(current).value}' task)"
        )
    return TARGETS.get(action)
