"""Reconciliation of regular Atlas clusters.

Clusters and specs are JSON-like dicts using the Atlas API field names.
"""

from __future__ import annotations

import copy
import logging
from http import HTTPStatus
from typing import Any

from .jsonutil import diff_equate_empty, json_copy
from .workflow import AtlasAPIError, Context, Reason, Result

_log = logging.getLogger(__name__)

_READ_ONLY_FIELDS = (
    "id",
    "mongoDBVersion",
    "mongoURI",
    "mongoURIUpdated",
    "mongoURIWithOptions",
    "srvAddress",
    "stateName",
    "replicationFactor",
    "replicationSpec",
    "connectionStrings",
)


def remove_outdated_fields(
    remove_from: dict[str, Any], look_at: dict[str, Any] | None
) -> dict[str, Any]:
    """Return a copy of ``remove_from`` without fields that autoscaling makes moot.

    The autoscaling flags are read from ``look_at``, or from ``remove_from``
    itself when ``look_at`` is None.
    """
    if look_at is None:
        look_at = remove_from
    result = copy.deepcopy(remove_from)

    auto_scaling = look_at.get("autoScaling") or {}
    compute = auto_scaling.get("compute")
    if compute is not None:
        settings = result.setdefault("providerSettings", {})
        if compute.get("enabled"):
            settings.pop("instanceSizeName", None)
        else:
            settings.setdefault("autoScaling", {})["compute"] = {}
        if auto_scaling.get("diskGBEnabled"):
            result.pop("diskSizeGB", None)
    return result


def cleanup_cluster(cluster: dict[str, Any]) -> dict[str, Any]:
    """Drop fields that cannot be changed through the API or are deprecated."""
    cleaned = {k: v for k, v in cluster.items() if k not in _READ_ONLY_FIELDS}
    return remove_outdated_fields(cleaned, None)


def merge_region_configs(
    atlas_specs: list[dict[str, Any]], operator_specs: list[dict[str, Any]]
) -> None:
    """Remove, in place, Atlas region configs that the operator spec leaves out.

    A replication spec whose operator side lists no regions is left alone,
    since Atlas fills in defaults there.
    """
    for atlas_spec, operator_spec in zip(atlas_specs, operator_specs):
        wanted = operator_spec.get("regionsConfig") or {}
        if not wanted:
            continue
        regions = atlas_spec.get("regionsConfig") or {}
        for key in [k for k in regions if k not in wanted]:
            del regions[key]


def merged_cluster(atlas_cluster: dict[str, Any], spec: dict[str, Any]) -> dict[str, Any]:
    """Return the Atlas cluster with the operator's cluster spec applied over it."""
    result = json_copy(atlas_cluster, spec)
    merge_region_configs(
        result.get("replicationSpecs") or [], spec.get("replicationSpecs") or []
    )

    # Atlas accepts providerSettings.regionName alongside replicationSpecs but
    # returns it empty afterwards, so it must not count as a difference.
    atlas_region = (atlas_cluster.get("providerSettings") or {}).get("regionName")
    settings = result.get("providerSettings")
    if result.get("replicationSpecs") and not atlas_region and settings is not None:
        settings.pop("regionName", None)
    return result


def clusters_equal(
    cluster_atlas: dict[str, Any], cluster_operator: dict[str, Any]
) -> bool:
    """Tell whether two clusters match, ignoring empty values and moot fields."""
    atlas_side = remove_outdated_fields(cluster_atlas, cluster_operator)
    operator_side = remove_outdated_fields(cluster_operator, None)
    differences = diff_equate_empty(atlas_side, operator_side)
    if differences:
        _log.debug("Clusters are different: %s", "; ".join(differences))
    return not differences


def _regular_cluster_idle(
    ctx: Context, project_id: str, spec: dict[str, Any], atlas_cluster: dict[str, Any]
) -> tuple[dict[str, Any] | None, Result]:
    try:
        resulting = merged_cluster(atlas_cluster, spec)
    except TypeError as err:
        return atlas_cluster, Result.terminate(Reason.INTERNAL, str(err))

    if clusters_equal(atlas_cluster, resulting):
        return atlas_cluster, Result.ok()

    spec_paused = spec.get("paused")
    if spec_paused is not None:
        if atlas_cluster.get("paused") is None or atlas_cluster["paused"] != spec_paused:
            # A pause change must be sent on its own before anything else.
            resulting = {"paused": spec_paused}
        else:
            resulting.pop("paused", None)

    resulting = cleanup_cluster(resulting)

    try:
        updated = ctx.client.clusters.update(project_id, spec.get("name"), resulting)
    except AtlasAPIError as err:
        return atlas_cluster, Result.terminate(
            Reason.CLUSTER_NOT_UPDATED_IN_ATLAS, str(err)
        )
    return updated, Result.in_progress(Reason.CLUSTER_UPDATING, "cluster is updating")


def ensure_cluster_state(
    ctx: Context, project_id: str, spec: dict[str, Any]
) -> tuple[dict[str, Any] | None, Result]:
    """Create or update the cluster in Atlas and report how far it has got."""
    name = spec.get("name")
    try:
        atlas_cluster = ctx.client.clusters.get(project_id, name)
    except AtlasAPIError as err:
        if err.status_code is None:
            return None, Result.terminate(Reason.INTERNAL, str(err))
        if err.status_code != HTTPStatus.NOT_FOUND:
            return None, Result.terminate(Reason.CLUSTER_NOT_CREATED_IN_ATLAS, str(err))
        try:
            new_cluster = json_copy({}, spec)
        except TypeError as copy_err:
            return None, Result.terminate(Reason.INTERNAL, str(copy_err))
        ctx.log.info("Cluster %s doesn't exist in Atlas - creating", name)
        try:
            atlas_cluster = ctx.client.clusters.create(project_id, new_cluster)
        except AtlasAPIError as create_err:
            return None, Result.terminate(
                Reason.CLUSTER_NOT_CREATED_IN_ATLAS, str(create_err)
            )

    state = atlas_cluster.get("stateName")
    match state:
        case "IDLE":
            return _regular_cluster_idle(ctx, project_id, spec, atlas_cluster)
        case "CREATING":
            return atlas_cluster, Result.in_progress(
                Reason.CLUSTER_CREATING, "cluster is provisioning"
            )
        case "UPDATING" | "REPAIRING":
            return atlas_cluster, Result.in_progress(
                Reason.CLUSTER_UPDATING, "cluster is updating"
            )
        case _:
            return atlas_cluster, Result.terminate(
                Reason.INTERNAL, f"unknown cluster state {state!r}"
            )