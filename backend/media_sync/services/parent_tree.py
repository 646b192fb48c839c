from typing import Any, Dict, Mapping

from media_sync.core.exceptions import MalformedParentTree

# Links walked below the root, in the order they nest.
PARENT_LINKS = ("season", "show", "franchise")


def _attributes(node: Mapping[str, Any], where: str) -> Mapping[str, Any]:
    attributes = node.get("attributes")
    if not isinstance(attributes, Mapping):
        raise MalformedParentTree(f"Parent tree {where} has no attributes")
    return attributes


def parse_parent_tree(parent_tree: Mapping[str, Any]) -> Dict[str, str]:
    """
    Flatten a Media Manager parent tree into relation type -> GUID.

    The root is the Asset's direct parent and is one of "franchise", "show",
    "special", "season" or "episode". An "episode" links to a "season", a
    "season" or "special" links to a "show" and a "show" might link to a
    "franchise". Relations that are not present are left out, e.g.

        {
            'episode': 'e358cacc-86e6-46a8-9269-dc72c8e34143',
            'season': 'da41c844-f87e-4c89-ae40-f41c72ebdd0f',
            'show': '294a8c40-1d69-4711-9163-5d17872b40e2',
            'franchise': 'e08bf78d-e6a3-44b9-b356-8753d01c7327',
        }
    """
    if not isinstance(parent_tree, Mapping):
        raise MalformedParentTree("Parent tree is not an object")

    tree: Dict[str, str] = {}
    if parent_tree.get("type"):
        tree[parent_tree["type"]] = parent_tree.get("id")
    branch = _attributes(parent_tree, "root")

    for relation in PARENT_LINKS:
        link = branch.get(relation)
        if not link:
            continue
        if not isinstance(link, Mapping) or not link.get("id"):
            raise MalformedParentTree(f"Parent tree {relation} link has no id")
        tree[relation] = link["id"]
        if relation != "franchise":
            branch = _attributes(link, relation)

    return tree
