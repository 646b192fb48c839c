import pytest

from media_sync.core.exceptions import MalformedParentTree
from media_sync.services.parent_tree import parse_parent_tree

from conftest import make_parent_tree


def test_full_episode_tree():
    assert parse_parent_tree(make_parent_tree("show-9")) == {
        "episode": "episode-1",
        "season": "season-1",
        "show": "show-9",
        "franchise": "franchise-1",
    }


def test_franchise_absent_is_left_out():
    tree = {
        "id": "special-1",
        "type": "special",
        "attributes": {"show": {"id": "show-1", "attributes": {"franchise": None}}},
    }
    result = parse_parent_tree(tree)
    assert result == {"special": "special-1", "show": "show-1"}
    assert "franchise" not in result


def test_show_root_with_franchise():
    tree = {"id": "show-1", "type": "show", "attributes": {"franchise": {"id": "franchise-1"}}}
    assert parse_parent_tree(tree) == {"show": "show-1", "franchise": "franchise-1"}


def test_franchise_root():
    assert parse_parent_tree({"id": "franchise-1", "type": "franchise", "attributes": {}}) == {
        "franchise": "franchise-1",
    }


@pytest.mark.parametrize("tree", [
    None,
    "not a tree",
    {"id": "episode-1", "type": "episode"},
    {"id": "episode-1", "type": "episode", "attributes": {"season": {"attributes": {}}}},
    {"id": "episode-1", "type": "episode", "attributes": {"season": {"id": "season-1"}}},
])
def test_malformed_trees(tree):
    with pytest.raises(MalformedParentTree):
        parse_parent_tree(tree)
