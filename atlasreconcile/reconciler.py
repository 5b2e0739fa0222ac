"""Top-level reconciliation of an Atlas cluster resource.

A cluster resource is a JSON-like dict holding exactly one of
``clusterSpec``, ``advancedClusterSpec`` or ``serverlessSpec``, plus the
optional ``processArgs`` and ``backupScheduleRef`` entries.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from .advanced import ensure_advanced_cluster_state
from .clusters import ensure_cluster_state
from .jsonutil import diff_equate_empty, json_copy
from .serverless import ensure_serverless_instance_state
from .workflow import (
    CLUSTER_READY,
    DEFAULT_RETRY,
    DEFAULT_TIMEOUT,
    READY,
    AtlasAPIError,
    Context,
    Reason,
    Result,
)

CLUSTER_NOT_FOUND = "CLUSTER_NOT_FOUND"

BackupResolver = Callable[[dict[str, Any]], "tuple[dict[str, Any], dict[str, Any]]"]
SecretsHandler = Callable[[Context, str, str, Any], Result]


class BackupScheduleError(Exception):
    """The backup schedule of a cluster could not be applied."""


def build_backup_policy(
    cluster_name: str, schedule: dict[str, Any], policy: dict[str, Any]
) -> dict[str, Any]:
    """Build the Atlas snapshot backup policy request from schedule and policy specs."""
    items = [
        {
            "frequencyInterval": item.get("frequencyInterval"),
            "frequencyType": (item.get("frequencyType") or "").lower(),
            "retentionValue": item.get("retentionValue"),
            "retentionUnit": (item.get("retentionUnit") or "").lower(),
        }
        for item in policy.get("items") or []
    ]
    return {
        "clusterName": cluster_name,
        "referenceHourOfDay": schedule.get("referenceHourOfDay"),
        "referenceMinuteOfHour": schedule.get("referenceMinuteOfHour"),
        "restoreWindowDays": schedule.get("restoreWindowDays"),
        "updateSnapshots": schedule.get("updateSnapshots"),
        "policies": [{"policyItems": items}],
    }


def _cluster_name(cluster: dict[str, Any]) -> str | None:
    for key in ("advancedClusterSpec", "serverlessSpec", "clusterSpec"):
        spec = cluster.get(key)
        if spec is not None:
            return spec.get("name")
    return None


def _is_serverless(cluster: dict[str, Any]) -> bool:
    return cluster.get("serverlessSpec") is not None


def _require_backups(cluster_name: str, backup_enabled: bool) -> None:
    if not backup_enabled:
        raise BackupScheduleError(
            "can not proceed with backup schedule. "
            f"Backups are not enabled for cluster {cluster_name}"
        )


@dataclass
class ClusterReconciler:
    """Drives a cluster resource towards the state its spec describes.

    ``backup_resolver`` turns a ``backupScheduleRef`` into the schedule and
    policy specs it points at, raising LookupError when they are missing.
    ``connection_secrets`` is called once the cluster is ready to publish
    its connection details and returns a Result.
    """

    backup_resolver: BackupResolver | None = None
    connection_secrets: SecretsHandler | None = None
    retry_interval: float = DEFAULT_RETRY
    timeout: float = DEFAULT_TIMEOUT
    sleep: Callable[[float], None] = time.sleep
    log: logging.Logger = field(
        default_factory=lambda: logging.getLogger("atlasreconcile.reconciler")
    )

    def handle_cluster(
        self, ctx: Context, project_id: str, cluster: dict[str, Any]
    ) -> Result:
        """Reconcile the cluster and its advanced options; record the outcome on ctx."""
        if cluster.get("advancedClusterSpec") is not None:
            handler = self._handle_advanced
        elif _is_serverless(cluster):
            handler = self._handle_serverless
        else:
            handler = self._handle_regular

        result = handler(ctx, project_id, cluster)
        if not result.is_ok():
            ctx.set_condition_from_result(CLUSTER_READY, result)
            return result

        if not _is_serverless(cluster):
            result = self.handle_advanced_options(ctx, project_id, cluster)
            if not result.is_ok():
                ctx.set_condition_from_result(CLUSTER_READY, result)
                return result

        return Result.ok()

    def handle_backup_schedule(
        self,
        ctx: Context,
        project_id: str,
        cluster_name: str,
        backup_enabled: bool,
        schedule: dict[str, Any] | None,
        policy: dict[str, Any] | None,
    ) -> None:
        """Replace the cluster's Atlas backup policy with the given schedule.

        Does nothing when no schedule is given. Raises BackupScheduleError
        when backups are disabled or Atlas rejects the change.
        """
        if schedule is None:
            self.log.debug("no backup schedule configured for the cluster")
            return
        _require_backups(cluster_name, backup_enabled)

        self.log.info("updating backupschedule for the atlas cluster: %s", cluster_name)
        request = build_backup_policy(cluster_name, schedule, policy or {})

        service = ctx.client.cloud_provider_snapshot_backup_policies
        try:
            current = service.delete(project_id, cluster_name)
        except AtlasAPIError as err:
            self.log.debug(
                "unable to delete current backup policy for project: %s:%s, %s",
                project_id,
                cluster_name,
                err,
            )
            raise BackupScheduleError(
                "unable to delete current backup policy for project: "
                f"{project_id}:{cluster_name}, {err}"
            ) from err
        self.log.debug(
            "successfully deleted backup policy. Default schedule received: %s", current
        )

        current = current or {}
        request["clusterId"] = current.get("clusterId")
        current_policies = current.get("policies") or []
        if current_policies:
            # Atlas keeps exactly one policy per cluster.
            request["policies"][0]["id"] = current_policies[0].get("id")

        self.log.debug("applying backupschedule policy: %s", request)
        try:
            service.update(project_id, cluster_name, request)
        except AtlasAPIError as err:
            raise BackupScheduleError(
                f"unable to create backupschedule for cluster {cluster_name}. e: {err}"
            ) from err
        self.log.info("successfully updated backupschedule for cluster %s", cluster_name)

    def handle_advanced_options(
        self, ctx: Context, project_id: str, cluster: dict[str, Any]
    ) -> Result:
        """Bring the cluster's process arguments in line with the spec."""
        name = _cluster_name(cluster)
        try:
            atlas_args = ctx.client.clusters.get_process_args(project_id, name)
        except AtlasAPIError:
            return Result.terminate(Reason.INTERNAL, "cannot get process args")

        spec_args = cluster.get("processArgs")
        if spec_args is None:
            return Result.ok()

        atlas_args = atlas_args or {}
        if diff_equate_empty(json_copy(atlas_args, spec_args), atlas_args):
            try:
                args = ctx.client.clusters.update_process_args(
                    project_id, name, dict(spec_args)
                )
            except AtlasAPIError as err:
                ctx.log.debug("ProcessArgs Update failed: %s", err)
                return Result.terminate(Reason.INTERNAL, "cannot update process args")
            ctx.log.debug("ProcessArgs Update: %s", args)

        return Result.ok()

    def delete_cluster_from_atlas(
        self, client: Any, project_id: str, cluster: dict[str, Any]
    ) -> threading.Thread:
        """Start deleting the cluster from Atlas in the background.

        Deletion is retried until it is accepted, the cluster is reported
        missing, or the timeout passes. Returns the worker thread.
        """
        worker = threading.Thread(
            target=self._delete_until_done,
            args=(client, project_id, cluster),
            daemon=True,
        )
        worker.start()
        return worker

    def _delete_until_done(
        self, client: Any, project_id: str, cluster: dict[str, Any]
    ) -> bool:
        if _is_serverless(cluster):
            delete = client.serverless_instances.delete
        elif cluster.get("advancedClusterSpec") is not None:
            delete = client.advanced_clusters.delete
        else:
            delete = client.clusters.delete
        name = _cluster_name(cluster)

        deadline = time.monotonic() + self.timeout
        while time.monotonic() < deadline:
            try:
                delete(project_id, name)
            except AtlasAPIError as err:
                if err.error_code == CLUSTER_NOT_FOUND:
                    self.log.info("Cluster doesn't exist or is already deleted")
                    return True
                self.log.error("Cannot delete Atlas cluster: %s", err)
                self.sleep(self.retry_interval)
                continue
            self.log.info("Started Atlas cluster deletion process")
            return True

        self.log.error("Failed to delete Atlas cluster in time")
        return False

    def _apply_backup(
        self,
        ctx: Context,
        project_id: str,
        cluster: dict[str, Any],
        cluster_name: str,
        backup_enabled: bool,
    ) -> None:
        ref = cluster.get("backupScheduleRef") or {}
        if not ref.get("name") and not ref.get("namespace"):
            self.log.debug("no backup schedule configured for the cluster")
            return
        _require_backups(cluster_name, backup_enabled)
        if self.backup_resolver is None:
            raise BackupScheduleError(f"{ref} backupschedule resource is not found")
        try:
            schedule, policy = self.backup_resolver(ref)
        except LookupError as err:
            raise BackupScheduleError(
                f"{ref} backupschedule resource is not found. e: {err}"
            ) from err
        self.handle_backup_schedule(
            ctx, project_id, cluster_name, backup_enabled, schedule, policy
        )

    def _backup_step(
        self,
        ctx: Context,
        project_id: str,
        cluster: dict[str, Any],
        cluster_name: str,
        backup_enabled: bool,
    ) -> Result:
        try:
            self._apply_backup(ctx, project_id, cluster, cluster_name, backup_enabled)
        except (BackupScheduleError, AtlasAPIError) as err:
            result = Result.terminate(Reason.INTERNAL, str(err))
            ctx.set_condition_from_result(CLUSTER_READY, result)
            return result
        return Result.ok()

    def _ensure_secrets(
        self, ctx: Context, project_id: str, name: str, connection_strings: Any
    ) -> Result:
        if self.connection_secrets is None:
            return Result.ok()
        return self.connection_secrets(ctx, project_id, name, connection_strings)

    def _finish(
        self,
        ctx: Context,
        project_id: str,
        result: Result,
        atlas_cluster: dict[str, Any] | None,
        *,
        with_uri_updated: bool,
    ) -> Result:
        if atlas_cluster and atlas_cluster.get("stateName"):
            ctx.ensure_status_option("stateName", atlas_cluster["stateName"])
        if not result.is_ok():
            return result

        secrets = self._ensure_secrets(
            ctx,
            project_id,
            atlas_cluster.get("name"),
            atlas_cluster.get("connectionStrings"),
        )
        if not secrets.is_ok():
            return secrets

        ctx.set_condition_true(CLUSTER_READY).ensure_status_option(
            "mongoDBVersion", atlas_cluster.get("mongoDBVersion")
        ).ensure_status_option(
            "connectionStrings", atlas_cluster.get("connectionStrings")
        )
        if with_uri_updated:
            ctx.ensure_status_option(
                "mongoURIUpdated", atlas_cluster.get("mongoURIUpdated")
            )
        ctx.set_condition_true(READY)
        return result

    def _handle_advanced(
        self, ctx: Context, project_id: str, cluster: dict[str, Any]
    ) -> Result:
        found, result = ensure_advanced_cluster_state(
            ctx, project_id, cluster["advancedClusterSpec"]
        )
        if found and found.get("stateName"):
            ctx.ensure_status_option("stateName", found["stateName"])
        if not result.is_ok():
            return result

        backup = self._backup_step(
            ctx,
            project_id,
            cluster,
            found.get("name"),
            bool(found.get("backupEnabled")),
        )
        if not backup.is_ok():
            return backup
        return self._finish(ctx, project_id, result, found, with_uri_updated=False)

    def _handle_serverless(
        self, ctx: Context, project_id: str, cluster: dict[str, Any]
    ) -> Result:
        found, result = ensure_serverless_instance_state(
            ctx, project_id, cluster["serverlessSpec"]
        )
        return self._finish(ctx, project_id, result, found, with_uri_updated=True)

    def _handle_regular(
        self, ctx: Context, project_id: str, cluster: dict[str, Any]
    ) -> Result:
        found, result = ensure_cluster_state(
            ctx, project_id, cluster.get("clusterSpec") or {}
        )
        if found and found.get("stateName"):
            ctx.ensure_status_option("stateName", found["stateName"])
        if not result.is_ok():
            return result

        enabled = bool(found.get("providerBackupEnabled")) or bool(
            found.get("backupEnabled")
        )
        backup = self._backup_step(ctx, project_id, cluster, found.get("name"), enabled)
        if not backup.is_ok():
            return backup
        return self._finish(ctx, project_id, result, found, with_uri_updated=True)