"""Invocation rules for each engine operation."""
from dataclasses import dataclass
from enum import Enum


class Operation(str, Enum):
    """Every operation the engine exposes."""
    APPLY = "apply"
    UNAPPLY = "unapply"
    STATUS = "status"
    RESET = "reset"
    EXEC = "exec"
    LOCK = "lock"
    UNLOCK = "unlock"


@dataclass(frozen=True)
class InvokeRules:
    """What must hold before an operation runs."""
    do_config_autosync: bool = False
    require_sudo: bool = False
    respect_lock: bool = False


_RULES = {
    Operation.APPLY: InvokeRules(do_config_autosync=True, respect_lock=True),
    Operation.UNAPPLY: InvokeRules(respect_lock=True),
    Operation.STATUS: InvokeRules(do_config_autosync=True),
    Operation.RESET: InvokeRules(respect_lock=True),
    Operation.EXEC: InvokeRules(do_config_autosync=True, respect_lock=True),
    Operation.LOCK: InvokeRules(require_sudo=True),
    Operation.UNLOCK: InvokeRules(require_sudo=True),
}


def rules_for(operation: Operation) -> InvokeRules:
    """Look up the rules for an operation."""
    return _RULES[Operation(operation)]
