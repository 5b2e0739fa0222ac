# atlasreconcile

Reconciliation logic for managed database clusters. Given the cluster
specification you want and the cluster as the hosting API reports it, the
package works out what has to change, sends the update through a client you
supply, and reports progress as a workflow `Result`.

Clusters, specs and API responses are plain JSON-like dicts that use the API's
field names (`name`, `stateName`, `providerSettings`, `replicationSpecs`, ...).

## Modules

- `atlasreconcile.workflow`
  - `Result` with `Result.ok()`, `Result.terminate(reason, message)`,
    `Result.in_progress(reason, message)` and `is_ok()`.
  - `Reason`, the enumeration of reasons a step did not finish.
  - `AtlasAPIError(message, status_code=None, error_code=None)`, raised by
    client objects for API failures. `status_code` is `None` when no HTTP
    response was received.
  - `Context`, which carries the API `client`, a logger, and records status
    conditions (`set_condition_true`, `set_condition_from_result`) and status
    options (`ensure_status_option`). The setters return the context, so calls
    can be chained.
- `atlasreconcile.jsonutil`
  - `json_copy(target, source)` returns `target` with `source` overlaid on it
    as a JSON decode would: `None` values are ignored, objects are merged key
    by key, arrays element by element. Neither argument is modified; a
    `TypeError` is raised for values that are not JSON-serialisable.
  - `diff_equate_empty(left, right)` lists the differences between two
    documents, treating missing keys, `None` and empty strings, arrays and
    objects as equal. An empty list means the documents match.
- `atlasreconcile.clusters` (regular clusters)
  - `merged_cluster(atlas_cluster, spec)`, `clusters_equal(cluster_atlas,
    cluster_operator)`, `cleanup_cluster(cluster)`,
    `remove_outdated_fields(remove_from, look_at)` and
    `merge_region_configs(atlas_specs, operator_specs)`.
  - `ensure_cluster_state(ctx, project_id, spec)` fetches the cluster, creates
    it if the API answers 404, and updates it when it is idle but differs
    from the spec. A change of `paused` is sent on its own first.
- `atlasreconcile.advanced` (advanced clusters)
  - `merged_advanced_cluster`, `advanced_clusters_equal`,
    `cleanup_advanced_cluster` and `ensure_advanced_cluster_state`.
  - `get_all_cluster_names(client, project_id)` lists regular and advanced
    cluster names, reporting clusters that appear in both lists once.
- `atlasreconcile.serverless`
  - `ensure_serverless_instance_state(ctx, project_id, serverless_spec)`
    creates the instance if missing and reports its state.
- `atlasreconcile.reconciler`
  - `ClusterReconciler` picks the advanced, serverless or regular handler
    from the resource (`advancedClusterSpec`, `serverlessSpec` or
    `clusterSpec`) in `handle_cluster`, applies a backup schedule
    (`handle_backup_schedule`), aligns `processArgs`
    (`handle_advanced_options`) and deletes a cluster in a background thread
    with retries until a timeout (`delete_cluster_from_atlas`).
  - `build_backup_policy(cluster_name, schedule, policy)` builds the snapshot
    backup policy request; frequency types and retention units are
    lower-cased.

## The client

Every function that talks to the API uses a client object with these
services and methods, each raising `AtlasAPIError` on failure:

- `client.clusters`: `get`, `create`, `update`, `list`, `delete`,
  `get_process_args`, `update_process_args`
- `client.advanced_clusters`: `get`, `create`, `update`, `list`, `delete`
- `client.serverless_instances`: `get`, `create`, `delete`
- `client.cloud_provider_snapshot_backup_policies`: `delete`, `update`

## Example

```python
from atlasreconcile.clusters import merged_cluster, clusters_equal

atlas = {"providerSettings": {"providerName": "AWS"}, "clusterType": "GEOSHARDED"}
spec = {"providerSettings": {"providerName": "AWS"}, "clusterType": "GEOSHARDED"}

merged = merged_cluster(atlas, spec)
assert clusters_equal(atlas, merged)
```

If the clusters are equal, no update is needed. Otherwise
`ensure_cluster_state(ctx, project_id, spec)` sends the cleaned-up merged
cluster through `ctx.client` and returns an in-progress result until the
cluster is idle again.

## What it does not do

- It ships no HTTP client for the hosting API; you pass in an object with
  the services listed above.
- It does not watch or store resources, and has no command or server.
  `ClusterReconciler` is driven by your own code.
- It does not create connection secrets or look up backup schedule and
  policy resources itself; supply `connection_secrets` and
  `backup_resolver` callables to `ClusterReconciler` for that.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```