"""Reconciliation of Atlas clusters managed through the advanced cluster API.

Clusters and specs are JSON-like dicts using the Atlas API field names.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from .jsonutil import diff_equate_empty, json_copy
from .workflow import AtlasAPIError, Context, Reason, Result

_log = logging.getLogger(__name__)

_READ_ONLY_FIELDS = ("id", "mongoDBVersion", "stateName", "connectionStrings")


def cleanup_advanced_cluster(cluster: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of the cluster without fields the API does not accept."""
    return {k: v for k, v in cluster.items() if k not in _READ_ONLY_FIELDS}


def merged_advanced_cluster(
    advanced_cluster: dict[str, Any], spec: dict[str, Any]
) -> dict[str, Any]:
    """Return the Atlas advanced cluster with the operator's spec applied over it.

    Atlas does not always report backing provider names, so where the Atlas
    side has none the merged result has none either.
    """
    result = json_copy(advanced_cluster, spec)
    merged_specs = result.get("replicationSpecs") or []
    atlas_specs = advanced_cluster.get("replicationSpecs") or []
    for atlas_spec, merged_spec in zip(atlas_specs, merged_specs):
        atlas_regions = (atlas_spec or {}).get("regionConfigs") or []
        merged_regions = (merged_spec or {}).get("regionConfigs") or []
        for atlas_region, merged_region in zip(atlas_regions, merged_regions):
            if not (atlas_region or {}).get("backingProviderName") and merged_region:
                merged_region.pop("backingProviderName", None)
    return result


def advanced_clusters_equal(
    cluster_atlas: dict[str, Any], cluster_operator: dict[str, Any]
) -> bool:
    """Tell whether two advanced clusters match, treating empty values as equal."""
    differences = diff_equate_empty(cluster_atlas, cluster_operator)
    if differences:
        _log.debug("Clusters are different: %s", "; ".join(differences))
    return not differences


def _advanced_cluster_idle(
    ctx: Context, project_id: str, spec: dict[str, Any], advanced_cluster: dict[str, Any]
) -> tuple[dict[str, Any] | None, Result]:
    try:
        resulting = merged_advanced_cluster(advanced_cluster, spec)
    except TypeError as err:
        return advanced_cluster, Result.terminate(Reason.INTERNAL, str(err))

    if advanced_clusters_equal(advanced_cluster, resulting):
        return advanced_cluster, Result.ok()

    spec_paused = spec.get("paused")
    if spec_paused is not None:
        atlas_paused = advanced_cluster.get("paused")
        if atlas_paused is None or atlas_paused != spec_paused:
            # A pause change must be sent on its own before anything else.
            resulting = {"paused": spec_paused}
        else:
            resulting.pop("paused", None)

    resulting = cleanup_advanced_cluster(resulting)

    try:
        ctx.client.advanced_clusters.update(project_id, spec.get("name"), resulting)
    except AtlasAPIError as err:
        return None, Result.terminate(Reason.CLUSTER_NOT_UPDATED_IN_ATLAS, str(err))
    return None, Result.in_progress(Reason.CLUSTER_UPDATING, "cluster is updating")


def ensure_advanced_cluster_state(
    ctx: Context, project_id: str, spec: dict[str, Any]
) -> tuple[dict[str, Any] | None, Result]:
    """Create or update the advanced cluster in Atlas and report how far it has got."""
    name = spec.get("name")
    try:
        advanced_cluster = ctx.client.advanced_clusters.get(project_id, name)
    except AtlasAPIError as err:
        if err.status_code is None:
            return None, Result.terminate(Reason.INTERNAL, str(err))
        if err.status_code != HTTPStatus.NOT_FOUND:
            return None, Result.terminate(Reason.CLUSTER_NOT_CREATED_IN_ATLAS, str(err))
        try:
            new_cluster = json_copy({}, spec)
        except TypeError as copy_err:
            return None, Result.terminate(Reason.INTERNAL, str(copy_err))
        ctx.log.info("Advanced Cluster %s doesn't exist in Atlas - creating", name)
        try:
            advanced_cluster = ctx.client.advanced_clusters.create(
                project_id, new_cluster
            )
        except AtlasAPIError as create_err:
            return None, Result.terminate(
                Reason.CLUSTER_NOT_CREATED_IN_ATLAS, str(create_err)
            )

    state = advanced_cluster.get("stateName")
    match state:
        case "IDLE":
            return _advanced_cluster_idle(ctx, project_id, spec, advanced_cluster)
        case "CREATING":
            return advanced_cluster, Result.in_progress(
                Reason.CLUSTER_CREATING, "cluster is provisioning"
            )
        case "UPDATING" | "REPAIRING":
            return advanced_cluster, Result.in_progress(
                Reason.CLUSTER_UPDATING, "cluster is updating"
            )
        case _:
            return advanced_cluster, Result.terminate(
                Reason.INTERNAL, f"unknown cluster state {state!r}"
            )


def get_all_cluster_names(client: Any, project_id: str) -> list[str]:
    """Return the names of all regular and advanced clusters in a project.

    Advanced clusters that also appear in the regular cluster list are
    reported once. API errors propagate as AtlasAPIError.
    """
    clusters = client.clusters.list(project_id)
    advanced_clusters = client.advanced_clusters.list(project_id)

    names = [c.get("name") for c in clusters]
    regular = set(names)
    names.extend(
        c.get("name") for c in advanced_clusters if c.get("name") not in regular
    )
    return names