"""Reconciliation of Atlas serverless instances."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from .workflow import AtlasAPIError, Context, Reason, Result


def _create_request(serverless_spec: dict[str, Any]) -> dict[str, Any]:
    settings = serverless_spec.get("providerSettings") or {}
    return {
        "name": serverless_spec.get("name"),
        "providerSettings": {
            "backingProviderName": settings.get("backingProviderName"),
            "providerName": settings.get("providerName"),
            "regionName": settings.get("regionName"),
        },
    }


def ensure_serverless_instance_state(
    ctx: Context, project_id: str, serverless_spec: dict[str, Any]
) -> tuple[dict[str, Any] | None, Result]:
    """Create the serverless instance if missing and report its state."""
    name = serverless_spec.get("name")
    try:
        instance = ctx.client.serverless_instances.get(project_id, name)
    except AtlasAPIError as err:
        if err.status_code is None:
            return None, Result.terminate(Reason.INTERNAL, str(err))
        if err.status_code != HTTPStatus.NOT_FOUND:
            return None, Result.terminate(Reason.CLUSTER_NOT_CREATED_IN_ATLAS, str(err))
        ctx.log.info("Serverless Instance %s doesn't exist in Atlas - creating", name)
        try:
            instance = ctx.client.serverless_instances.create(
                project_id, _create_request(serverless_spec)
            )
        except AtlasAPIError as create_err:
            return None, Result.terminate(
                Reason.CLUSTER_NOT_CREATED_IN_ATLAS, str(create_err)
            )

    state = instance.get("stateName")
    match state:
        case "IDLE":
            return instance, Result.ok()
        case "CREATING":
            return instance, Result.in_progress(
                Reason.CLUSTER_CREATING, "cluster is provisioning"
            )
        case "UPDATING" | "REPAIRING":
            return instance, Result.in_progress(
                Reason.CLUSTER_UPDATING, "cluster is updating"
            )
        case _:
            return instance, Result.terminate(
                Reason.INTERNAL, f"unknown cluster state {state!r}"
            )