"""
Kube Actuator - Action Execution Errors
========================================

Failures are grouped by where they happen, because the caller has to
treat them differently:

- validation / resolution errors happen before anything is changed;
- mutation errors mean the replica update was rejected;
- rendezvous and placement errors happen after the replica count was
  already committed. Nothing is rolled back, so the cluster keeps the
  new desired count even though the action did not complete.
"""

from typing import Optional


class ActionExecutionError(Exception):
    """Base class for errors raised while executing an action."""

    error_type = "execution"
    # True when the cluster may already hold the new replica count
    mutation_committed = False

    def __init__(self, message: str = "", mutation_committed: Optional[bool] = None):
        super().__init__(message)
        if mutation_committed is not None:
            self.mutation_committed = mutation_committed


class ActionValidationError(ActionExecutionError):
    """The action item or the derived scaling plan is invalid."""

    error_type = "validation"


class ResolutionError(ActionExecutionError):
    """The target pod or its owning controller could not be found."""

    error_type = "resolution"


class MutationError(ActionExecutionError):
    """The API server rejected the replica update."""

    error_type = "mutation"


class RendezvousError(ActionExecutionError):
    """The new pod was not received after scaling out."""

    error_type = "rendezvous"
    mutation_committed = True


class RendezvousTimeoutError(RendezvousError):
    """No pod was published for the controller before the deadline."""


class BrokerClosedError(RendezvousError):
    """The pod broker was shut down while the action was waiting."""


class PlacementError(ActionExecutionError):
    """The new pod could not be placed on a node."""

    error_type = "placement"
    mutation_committed = True
