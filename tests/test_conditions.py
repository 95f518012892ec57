from llmcloud_operator.models import Condition, find_condition, set_condition


def test_set_condition_appends():
    conditions = []
    set_condition(conditions, "Ready", True, "WorkspaceReady", "Workspace is ready", 3)
    assert len(conditions) == 1
    assert conditions[0].status == "True"
    assert conditions[0].observed_generation == 3
    assert conditions[0].last_transition_time


def test_transition_time_moves_only_on_flip():
    conditions = [Condition(type="Ready", status="True", reason="A", last_transition_time="2024-01-01T00:00:00Z")]
    set_condition(conditions, "Ready", True, "B", "still ready")
    assert conditions[0].last_transition_time == "2024-01-01T00:00:00Z"
    assert conditions[0].reason == "B"

    set_condition(conditions, "Ready", False, "C", "broken")
    assert conditions[0].status == "False"
    assert conditions[0].last_transition_time != "2024-01-01T00:00:00Z"


def test_find_condition():
    conditions = []
    set_condition(conditions, "Ready", False, "Pending", "")
    assert find_condition(conditions, "Ready").reason == "Pending"
    assert find_condition(conditions, "Degraded") is None


def test_condition_serializes_camel_case():
    condition = Condition(type="Ready", status="True", reason="X", observed_generation=1, last_transition_time="t")
    assert condition.to_json() == {
        "type": "Ready",
        "status": "True",
        "reason": "X",
        "message": "",
        "observedGeneration": 1,
        "lastTransitionTime": "t",
    }
