from types import SimpleNamespace

import pytest

from atlasreconcile.serverless import ensure_serverless_instance_state
from atlasreconcile.workflow import AtlasAPIError, Context, Outcome, Reason


class FakeServerless:
    def __init__(self, existing=None, get_error=None, create_error=None, created_state="CREATING"):
        self.existing = existing
        self.get_error = get_error
        self.create_error = create_error
        self.created_state = created_state
        self.created = []

    def get(self, project_id, name):
        if self.get_error is not None:
            raise self.get_error
        return dict(self.existing)

    def create(self, project_id, params):
        self.created.append((project_id, params))
        if self.create_error is not None:
            raise self.create_error
        return {"name": params["name"], "stateName": self.created_state}


def make_ctx(api):
    return Context(client=SimpleNamespace(serverless_instances=api))


SPEC = {
    "name": "serverless",
    "providerSettings": {
        "backingProviderName": "AWS",
        "providerName": "SERVERLESS",
        "regionName": "US_EAST_1",
    },
}


def test_not_found_creates_instance_with_provider_settings():
    api = FakeServerless(get_error=AtlasAPIError("missing", status_code=404))
    instance, result = ensure_serverless_instance_state(make_ctx(api), "proj", SPEC)
    project_id, params = api.created[0]
    assert project_id == "proj"
    assert params == {"name": SPEC["name"], "providerSettings": SPEC["providerSettings"]}
    assert result.reason is Reason.CLUSTER_CREATING
    assert result.message == "cluster is provisioning"
    assert instance["name"] == SPEC["name"]


def test_idle_is_ok():
    api = FakeServerless(existing={"name": "serverless", "stateName": "IDLE"})
    instance, result = ensure_serverless_instance_state(make_ctx(api), "proj", SPEC)
    assert result.is_ok()
    assert instance["stateName"] == "IDLE"
    assert api.created == []


@pytest.mark.parametrize("state", ["UPDATING", "REPAIRING"])
def test_updating_states(state):
    api = FakeServerless(existing={"name": "serverless", "stateName": state})
    _, result = ensure_serverless_instance_state(make_ctx(api), "proj", SPEC)
    assert result.outcome is Outcome.IN_PROGRESS
    assert result.reason is Reason.CLUSTER_UPDATING
    assert result.message == "cluster is updating"


def test_unknown_state_terminates():
    api = FakeServerless(existing={"name": "serverless", "stateName": "DELETED"})
    _, result = ensure_serverless_instance_state(make_ctx(api), "proj", SPEC)
    assert result.reason is Reason.INTERNAL
    assert "DELETED" in result.message


def test_no_response_is_internal():
    api = FakeServerless(get_error=AtlasAPIError("network down"))
    instance, result = ensure_serverless_instance_state(make_ctx(api), "proj", SPEC)
    assert instance is None
    assert result.reason is Reason.INTERNAL
    assert result.message == "network down"


def test_other_status_is_not_created():
    api = FakeServerless(get_error=AtlasAPIError("boom", status_code=500))
    _, result = ensure_serverless_instance_state(make_ctx(api), "proj", SPEC)
    assert result.reason is Reason.CLUSTER_NOT_CREATED_IN_ATLAS
    assert api.created == []


def test_create_error_is_not_created():
    api = FakeServerless(
        get_error=AtlasAPIError("missing", status_code=404),
        create_error=AtlasAPIError("denied", status_code=400),
    )
    instance, result = ensure_serverless_instance_state(make_ctx(api), "proj", SPEC)
    assert instance is None
    assert result.outcome is Outcome.TERMINATE
    assert result.reason is Reason.CLUSTER_NOT_CREATED_IN_ATLAS
    assert result.message == "denied"