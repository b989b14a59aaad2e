import copy
import json

from conftest import apply_strategic_patch
from multiarch.patch import plan, plan_bytes


def _pod():
    return {
        "metadata": {
            "name": "p",
            "labels": {"app": "web"},
            "initializers": {"pending": [{"name": "me"}, {"name": "other"}]},
        },
        "spec": {
            "nodeName": "n1",
            "containers": [{"name": "A", "image": "A"}, {"name": "B", "image": "B"}],
            "initContainers": [{"name": "setup", "image": "setup"}],
        },
    }


def test_equal_snapshots_give_empty_patch():
    assert plan(_pod(), _pod()) == {}
    assert plan_bytes(_pod(), _pod()) == b"{}"


def test_container_images_are_patched_by_name():
    before = _pod()
    after = copy.deepcopy(before)
    after["spec"]["containers"][1]["image"] = "arm_B"

    patch = plan(before, after)
    assert patch == {
        "spec": {
            "containers": [{"name": "B", "image": "arm_B"}],
            "$setElementOrder/containers": [{"name": "A"}, {"name": "B"}],
        }
    }
    assert apply_strategic_patch(before, patch) == after


def test_patch_survives_reordered_containers():
    before = _pod()
    after = copy.deepcopy(before)
    after["spec"]["containers"][0]["image"] = "arm_A"
    patch = plan(before, after)

    # someone else reordered the containers before the patch lands
    live = copy.deepcopy(before)
    live["spec"]["containers"].reverse()
    patched = apply_strategic_patch(live, {"spec": {"containers": patch["spec"]["containers"]}})
    images = {c["name"]: c["image"] for c in patched["spec"]["containers"]}
    assert images == {"A": "arm_A", "B": "B"}


def test_dequeue_with_remaining_initializers_deletes_entry():
    before = _pod()
    after = copy.deepcopy(before)
    after["metadata"]["initializers"]["pending"] = [{"name": "other"}]

    patch = plan(before, after)
    assert patch == {
        "metadata": {
            "initializers": {
                "pending": [{"name": "me", "$patch": "delete"}],
                "$setElementOrder/pending": [{"name": "other"}],
            }
        }
    }
    assert apply_strategic_patch(before, patch) == after


def test_last_initializer_removes_the_field():
    before = _pod()
    before["metadata"]["initializers"]["pending"] = [{"name": "me"}]
    after = copy.deepcopy(before)
    del after["metadata"]["initializers"]

    patch = plan(before, after)
    assert patch == {"metadata": {"initializers": None}}
    assert json.loads(plan_bytes(before, after)) == {"metadata": {"initializers": None}}
    assert apply_strategic_patch(before, patch) == after


def test_unrelated_fields_are_left_out():
    before = _pod()
    after = copy.deepcopy(before)
    after["spec"]["initContainers"][0]["image"] = "setup:arm"
    del after["metadata"]["initializers"]

    patch = plan(before, after)
    assert set(patch) == {"metadata", "spec"}
    assert "labels" not in patch["metadata"]
    assert "nodeName" not in patch["spec"]
    assert "containers" not in patch["spec"]

    # concurrent label change elsewhere is not clobbered
    live = copy.deepcopy(before)
    live["metadata"]["labels"]["team"] = "infra"
    patched = apply_strategic_patch(live, patch)
    assert patched["metadata"]["labels"] == {"app": "web", "team": "infra"}
    assert patched["spec"]["initContainers"] == [{"name": "setup", "image": "setup:arm"}]


def test_unkeyed_lists_are_replaced():
    before = {"spec": {"tolerations": [{"key": "a"}]}}
    after = {"spec": {"tolerations": [{"key": "b"}]}}
    assert plan(before, after) == {"spec": {"tolerations": [{"key": "b"}]}}
