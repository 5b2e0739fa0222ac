import pytest

from atlasreconcile.workflow import (
    CLUSTER_READY,
    READY,
    AtlasAPIError,
    Context,
    Outcome,
    Reason,
    Result,
)


def test_ok_result_is_ok():
    result = Result.ok()
    assert result.is_ok()
    assert result.outcome is Outcome.OK
    assert result.reason is None


@pytest.mark.parametrize("factory", [Result.terminate, Result.in_progress])
def test_non_ok_results_keep_reason_and_message(factory):
    result = factory(Reason.CLUSTER_UPDATING, "cluster is updating")
    assert not result.is_ok()
    assert result.reason is Reason.CLUSTER_UPDATING
    assert result.message == "cluster is updating"


def test_terminate_and_in_progress_differ():
    assert Result.terminate(Reason.INTERNAL, "x").outcome is Outcome.TERMINATE
    assert Result.in_progress(Reason.INTERNAL, "x").outcome is Outcome.IN_PROGRESS


def test_reason_values_follow_names():
    ctx = Context()
    ctx.set_condition_from_result(
        CLUSTER_READY,
        Result.terminate(Reason.CLUSTER_NOT_CREATED_IN_ATLAS, "not created"),
    )
    assert ctx.conditions[CLUSTER_READY].reason == "ClusterNotCreatedInAtlas"


def test_set_condition_true_chains():
    ctx = Context()
    returned = ctx.set_condition_true(CLUSTER_READY).set_condition_true(READY)
    assert returned is ctx
    assert ctx.conditions[CLUSTER_READY].status is True
    assert ctx.conditions[READY].status is True


def test_set_condition_from_failed_result():
    ctx = Context()
    ctx.set_condition_from_result(
        CLUSTER_READY, Result.terminate(Reason.INTERNAL, "boom")
    )
    condition = ctx.conditions[CLUSTER_READY]
    assert condition.status is False
    assert condition.reason == Reason.INTERNAL.value
    assert condition.message == "boom"


def test_set_condition_from_ok_result_overrides():
    ctx = Context()
    ctx.set_condition_from_result(READY, Result.terminate(Reason.INTERNAL, "boom"))
    ctx.set_condition_from_result(READY, Result.ok())
    assert ctx.conditions[READY].status is True
    assert ctx.conditions[READY].message == ""


def test_ensure_status_option_records_value():
    ctx = Context()
    returned = ctx.ensure_status_option("stateName", "IDLE")
    assert returned is ctx
    assert ctx.status_options == {"stateName": "IDLE"}


def test_atlas_api_error_fields():
    err = AtlasAPIError("not found", status_code=404, error_code="CLUSTER_NOT_FOUND")
    assert str(err) == "not found"
    assert err.status_code == 404
    assert err.error_code == "CLUSTER_NOT_FOUND"
    with pytest.raises(AtlasAPIError):
        raise err