"""Asset workflow state machine.

The Asset Manager workflow moves an asset version forward through
Draft -> InReview -> Approved -> Published.  Rejected and Withdrawn are exits
taken from review.  Requested changes are validated locally against a
precomputed path table before anything is sent, so an impossible request
fails without a round trip.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from asset_api import change_status, get_asset
from api_client import ApiClient
from errors import (
    ConflictError,
    InvalidTransitionError,
    MalformedResponseError,
    StatusConflictError,
    StatusInterruptedError,
    UamCliError,
)
from models.uamcli import AssetStatus, StatusChange
from models.unity import AssetIdentity

logger = logging.getLogger("uamcli.status")

FORWARD_ORDER: Tuple[AssetStatus, ...] = (
    AssetStatus.DRAFT,
    AssetStatus.IN_REVIEW,
    AssetStatus.APPROVED,
    AssetStatus.PUBLISHED,
)

DEFAULT_EXITS: Dict[AssetStatus, Tuple[AssetStatus, ...]] = {
    AssetStatus.IN_REVIEW: (AssetStatus.REJECTED, AssetStatus.WITHDRAWN),
    AssetStatus.APPROVED: (AssetStatus.REJECTED, AssetStatus.WITHDRAWN),
}


class StatusPolicy:
    """Reachability table for status changes.

    ``paths[(current, target)]`` holds the single-step transitions that take
    an asset from ``current`` to ``target``.  A pair that is absent is not a
    valid request.

    Args:
        forward: Ordered forward states.
        exits: Exit states reachable in one step from a given state.
    """

    def __init__(
        self,
        forward: Iterable[AssetStatus] = FORWARD_ORDER,
        exits: Optional[Mapping[AssetStatus, Iterable[AssetStatus]]] = None,
    ) -> None:
        self.forward = tuple(forward)
        self.exits = {
            state: tuple(targets)
            for state, targets in (DEFAULT_EXITS if exits is None else exits).items()
        }
        self.paths = self._build_paths()

    def _build_paths(self) -> Dict[Tuple[AssetStatus, AssetStatus], Tuple[AssetStatus, ...]]:
        paths: Dict[Tuple[AssetStatus, AssetStatus], Tuple[AssetStatus, ...]] = {}
        for i, current in enumerate(self.forward):
            for j in range(i + 1, len(self.forward)):
                paths[(current, self.forward[j])] = self.forward[i + 1 : j + 1]
        for current, targets in self.exits.items():
            for target in targets:
                if target != current:
                    paths[(current, target)] = (target,)
        return paths

    def plan(self, current: AssetStatus, target: AssetStatus) -> Tuple[AssetStatus, ...]:
        """Return the steps from ``current`` to ``target``.

        Raises:
            InvalidTransitionError: Same state, backward, or not allowed.
        """
        try:
            return self.paths[(current, target)]
        except KeyError:
            raise InvalidTransitionError(current, target) from None


DEFAULT_POLICY = StatusPolicy()


def plan_transitions(
    current: AssetStatus,
    target: AssetStatus,
    policy: StatusPolicy = DEFAULT_POLICY,
) -> List[AssetStatus]:
    return list(policy.plan(current, target))


def get_status(client: ApiClient, identity: AssetIdentity) -> AssetStatus:
    """Read the current workflow status of an asset version."""
    asset = get_asset(client, identity)
    try:
        return AssetStatus.parse(asset.status)
    except ValueError as exc:
        raise MalformedResponseError(str(exc), body=asset.status) from exc


def set_status(
    client: ApiClient,
    identity: AssetIdentity,
    target: AssetStatus,
    policy: StatusPolicy = DEFAULT_POLICY,
) -> StatusChange:
    """Move an asset version to ``target`` one step at a time.

    Steps are sent in order and the sequence stops at the first failure.
    The raised error reports the last status that was reached so the caller
    can resume from there instead of starting over.

    Args:
        client: API client.
        identity: Asset version to change.
        target: Desired status.
        policy: Reachability table.

    Returns:
        StatusChange describing the applied steps.

    Raises:
        InvalidTransitionError: ``target`` is not reachable from the current
            status.  Nothing is sent.
        StatusConflictError: The service answered 409 to a step.
        StatusInterruptedError: A step failed for any other reason,
            including a token refresh or vault read failing mid-sequence.
    """
    current = get_status(client, identity)
    steps = policy.plan(current, target)
    logger.info(
        "Moving asset %s from %s to %s (%d step(s))",
        identity.id, current.value, target.value, len(steps),
    )

    reached = current
    applied: List[AssetStatus] = []
    for step in steps:
        try:
            change_status(client, identity, step)
        except ConflictError as exc:
            logger.error("Service rejected %s -> %s: %s", reached.value, step.value, exc)
            raise StatusConflictError(reached, step, exc) from exc
        except UamCliError as exc:
            logger.error("Step %s -> %s failed: %s", reached.value, step.value, exc)
            raise StatusInterruptedError(reached, step, exc) from exc
        logger.info("  %s -> %s", reached.value, step.value)
        reached = step
        applied.append(step)

    return StatusChange(previous=current, current=reached, applied=applied)
