"""Reconciliation results, status conditions and the per-run context."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DEFAULT_RETRY = 10.0
DEFAULT_TIMEOUT = 1200.0

READY = "Ready"
CLUSTER_READY = "ClusterReady"
VALIDATION_SUCCEEDED = "ValidationSucceeded"


class Reason(str, Enum):
    """Why a reconciliation did not finish successfully."""

    INTERNAL = "Internal"
    ATLAS_CREDENTIALS_NOT_PROVIDED = "AtlasCredentialsNotProvided"
    CLUSTER_NOT_CREATED_IN_ATLAS = "ClusterNotCreatedInAtlas"
    CLUSTER_NOT_UPDATED_IN_ATLAS = "ClusterNotUpdatedInAtlas"
    CLUSTER_CREATING = "ClusterCreating"
    CLUSTER_UPDATING = "ClusterUpdating"
    CLUSTER_CONNECTION_SECRETS_NOT_CREATED = "ClusterConnectionSecretsNotCreated"
    CLUSTER_ADVANCED_OPTIONS_ARE_NOT_READY = "ClusterAdvancedOptionsAreNotReady"


class Outcome(Enum):
    """The three ways a reconciliation step can end."""

    OK = "ok"
    TERMINATE = "terminate"
    IN_PROGRESS = "in_progress"


@dataclass(frozen=True)
class Result:
    """Outcome of a reconciliation step, with a reason and message when not OK."""

    outcome: Outcome
    reason: Reason | None = None
    message: str = ""

    @classmethod
    def ok(cls) -> Result:
        return cls(Outcome.OK)

    @classmethod
    def terminate(cls, reason: Reason, message: str) -> Result:
        return cls(Outcome.TERMINATE, reason, message)

    @classmethod
    def in_progress(cls, reason: Reason, message: str) -> Result:
        return cls(Outcome.IN_PROGRESS, reason, message)

    def is_ok(self) -> bool:
        return self.outcome is Outcome.OK


class AtlasAPIError(Exception):
    """An error reported by the Atlas API.

    ``status_code`` is None when no HTTP response was received at all.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code

    def __str__(self) -> str:
        return self.message


@dataclass
class Condition:
    """A status condition of a resource."""

    type: str
    status: bool
    reason: str = ""
    message: str = ""


@dataclass
class Context:
    """State shared by the steps of one reconciliation run."""

    client: Any = None
    connection: Any = None
    log: logging.Logger = field(
        default_factory=lambda: logging.getLogger("atlasreconcile")
    )
    conditions: dict[str, Condition] = field(default_factory=dict)
    status_options: dict[str, Any] = field(default_factory=dict)

    def set_condition_true(self, condition: str) -> Context:
        self.conditions[condition] = Condition(condition, True)
        return self

    def set_condition_from_result(self, condition: str, result: Result) -> Context:
        reason = result.reason.value if result.reason is not None else ""
        self.conditions[condition] = Condition(
            condition, result.is_ok(), reason, result.message
        )
        return self

    def ensure_status_option(self, key: str, value: Any) -> Context:
        self.status_options[key] = value
        return self