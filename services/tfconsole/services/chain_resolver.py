"""Operation dependency chains.

Every operation has a static list of prerequisites. A chain is the
prerequisites that have not yet succeeded in this session, in table
order, followed by the requested operation itself.
"""

from collections.abc import Mapping

from tfconsole.domain.models import OperationKind, OperationStatus

VALIDATE = OperationKind.VALIDATE
PLAN = OperationKind.PLAN
COMPLIANCE = OperationKind.COMPLIANCE
APPLY = OperationKind.APPLY
DESTROY = OperationKind.DESTROY

DEPENDENCIES: dict[OperationKind, tuple[OperationKind, ...]] = {
    VALIDATE: (),
    PLAN: (VALIDATE,),
    COMPLIANCE: (VALIDATE, PLAN),
    APPLY: (VALIDATE, PLAN),
    # Destroy validates first for safety
    DESTROY: (VALIDATE,),
}

DESCRIPTIONS: dict[OperationKind, str] = {
    VALIDATE: "Check configuration syntax",
    PLAN: "Preview infrastructure changes",
    COMPLIANCE: "Check policy compliance",
    APPLY: "Create/update infrastructure",
    DESTROY: "Remove all infrastructure",
}


def unmet_dependencies(
    target: OperationKind,
    statuses: Mapping[OperationKind, OperationStatus],
) -> list[OperationKind]:
    """Prerequisites of ``target`` that have not succeeded, in table order."""
    return [
        dep
        for dep in DEPENDENCIES[OperationKind(target)]
        if statuses.get(dep, OperationStatus.IDLE) != OperationStatus.SUCCEEDED
    ]


def compute_chain(
    target: OperationKind,
    statuses: Mapping[OperationKind, OperationStatus] | None = None,
) -> list[OperationKind]:
    """Ordered, de-duplicated operations to run for ``target``, target last.

    The target is always included, even when it already succeeded.
    """
    target = OperationKind(target)
    chain = [*unmet_dependencies(target, statuses or {}), target]
    return list(dict.fromkeys(chain))


def describe_chain(
    target: OperationKind,
    statuses: Mapping[OperationKind, OperationStatus] | None = None,
) -> str:
    """One-line hint shown next to an operation control."""
    target = OperationKind(target)
    unmet = unmet_dependencies(target, statuses or {})
    if unmet:
        return "Will run: " + " → ".join([*unmet, target])
    return DESCRIPTIONS[target]
