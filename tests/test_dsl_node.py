import json

import pytest

from fleetsrv.dsl_node import Node, SortOrder, new_root, with_range_gt, with_range_lte


def load(node):
    return json.loads(node.to_json())


def test_empty_root_is_null():
    assert new_root().to_json() == "null"


def test_match_all_and_match_none_are_empty_objects():
    root = new_root()
    root.query().match_all()
    assert load(root)["query"]["match_all"] == {}
    other = new_root()
    other.query().match_none()
    assert load(other)["query"]["match_none"] == {}


def test_object_keys_are_sorted():
    root = new_root()
    root.size(1)
    root.query().match_all()
    root.param("a_param", True)
    root.aggs().agg("x").max().field("f")
    keys = list(load(root))
    assert keys == sorted(keys)
    assert len(keys) == 4


def test_find_or_create_returns_same_child():
    root = new_root()
    root.aggs().agg("a").max().field("x")
    root.aggs().agg("b").max().field("y")
    assert load(root)["aggs"] == {"a": {"max": {"field": "x"}}, "b": {"max": {"field": "y"}}}
    root.query().bool().must().term("f", 1, None)
    root.query().bool().must().term("g", 2, None)
    assert load(root)["query"]["bool"]["must"] == [{"term": {"f": 1}}, {"term": {"g": 2}}]


def test_adding_child_to_leaf_raises():
    root = new_root()
    child = root.agg("a")
    root.param("a", 1)
    with pytest.raises(ValueError):
        child.query()


def test_must_terms_are_listed_in_order():
    root = new_root()
    must = root.query().bool().must()
    must.term("type", "fleet-agents", None)
    must.term("fleet-agents.access_api_key_id", "abc", None)
    clauses = load(root)["query"]["bool"]["must"]
    assert clauses[0]["term"]["type"] == "fleet-agents"
    assert clauses[1]["term"]["fleet-agents.access_api_key_id"] == "abc"
    assert root.query().bool().must() is must
    assert len(load(root)["query"]["bool"]["must"]) == 2


def test_term_with_boost_keeps_value_first():
    root = new_root()
    root.query().term("f", "v", 2.5)
    text = root.to_json()
    assert json.loads(text)["query"]["term"]["f"] == {"value": "v", "boost": 2.5}
    assert text.index('"value"') < text.index('"boost"')


def test_integral_float_boost_written_without_fraction():
    root = new_root()
    root.query().term("f", "v", 2.0)
    assert '"boost":2}' in root.to_json()


def test_terms_with_boost():
    root = new_root()
    root.query().terms("f", ["a", "b"], 1.5)
    assert load(root)["query"]["terms"] == {"f": ["a", "b"], "boost": 1.5}


def test_ranges_in_filter_list():
    root = new_root()
    f = root.query().bool().filter()
    f.range("_seq_no", with_range_gt(3))
    f.range("_seq_no", with_range_lte(9))
    clauses = load(root)["query"]["bool"]["filter"]
    assert len(clauses) == 2
    assert clauses[0]["range"]["_seq_no"]["gt"] == 3
    assert clauses[1]["range"]["_seq_no"]["lte"] == 9


def test_range_with_both_bounds_on_object():
    root = new_root()
    root.query().range("expiration", with_range_gt(1), with_range_lte(5))
    assert load(root)["query"]["range"]["expiration"] == {"gt": 1, "lte": 5}


def test_filter_resets_previous_entries():
    root = new_root()
    root.query().bool().filter().term("a", "x", None)
    root.query().bool().filter()
    assert load(root)["query"]["bool"]["filter"] == []


def test_sort_order_defaults_and_overrides():
    root = new_root()
    s = root.sort()
    s.sort_order("a", SortOrder.ASCEND)
    s.sort_order("b", SortOrder.DESCEND)
    s.sort_order("_score", SortOrder.DESCEND)
    s.sort_order("_score", SortOrder.ASCEND)
    assert load(root)["sort"] == ["a", {"b": "desc"}, "_score", {"_score": "asc"}]


def test_sort_order_requires_sort_node():
    with pytest.raises(ValueError):
        new_root().sort_order("a", SortOrder.ASCEND)


def test_source_excludes_and_includes():
    root = new_root()
    root.source().excludes("agents")
    root.source().includes("_seq_no", "x")
    src = load(root)["_source"]
    assert src["excludes"] == ["agents"]
    assert src["includes"] == ["_seq_no", "x"]


def test_exists_and_field():
    root = new_root()
    root.query().exists("host.name")
    assert load(root)["query"]["exists"] == {"field": "host.name"}
    node = new_root()
    assert node.field("f") is node
    assert load(node)["field"] == "f"


def test_negative_size_rejected():
    with pytest.raises(ValueError):
        new_root().size(-1)


def test_html_characters_escaped():
    root = new_root()
    root.param("q", "<a&b>")
    text = root.to_json()
    assert "\\u003c" in text
    assert json.loads(text)["q"] == "<a&b>"


def test_latest_policies_aggregation_shape():
    root = new_root()
    root.size(0)
    pid = root.aggs().agg("policy_id")
    pid.terms("field", "policy_id", None).size(10000)
    top = pid.aggs().agg("revision_idx").top_hits()
    top.size(1)
    srt = top.sort()
    srt.sort_order("revision_idx", SortOrder.DESCEND)
    srt.sort_order("coordinator_idx", SortOrder.DESCEND)
    doc = load(root)
    agg = doc["aggs"]["policy_id"]
    assert doc["size"] == 0
    assert agg["terms"]["field"] == "policy_id"
    assert agg["terms"]["size"] == 10000
    hits = agg["aggs"]["revision_idx"]["top_hits"]
    assert hits["size"] == 1
    assert hits["sort"] == [{"revision_idx": "desc"}, {"coordinator_idx": "desc"}]


def test_unencodable_leaf_raises():
    root = new_root()
    root.param("x", object())
    with pytest.raises(TypeError):
        root.to_json()


def test_leaf_node_can_hold_nested_node():
    inner = Node(leaf="v")
    root = new_root()
    root.param("x", [inner])
    assert load(root)["x"] == ["v"]