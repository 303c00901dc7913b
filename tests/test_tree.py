import pytest

from cabinet.utils.tree import CorruptTreeError, is_within_subtree, walk_ancestors


def lookup(parents):
    async def get_parent_id(folder_id):
        if folder_id not in parents:
            raise LookupError(folder_id)
        return parents[folder_id]

    return get_parent_id


# a -> b -> c -> d, and a separate root x
TREE = {"a": None, "b": "a", "c": "b", "d": "c", "x": None}


async def test_walk_ancestors_returns_chain_leaf_first():
    assert await walk_ancestors("d", lookup(TREE), max_depth=10) == ["d", "c", "b", "a"]
    assert await walk_ancestors("a", lookup(TREE), max_depth=10) == ["a"]


async def test_walk_ancestors_detects_cycle():
    cyclic = {"a": "c", "b": "a", "c": "b"}
    with pytest.raises(CorruptTreeError):
        await walk_ancestors("a", lookup(cyclic), max_depth=10)

    assert await walk_ancestors("a", lookup(cyclic), max_depth=10, strict=False) == ["a", "c", "b"]


async def test_walk_ancestors_respects_depth_budget():
    with pytest.raises(CorruptTreeError):
        await walk_ancestors("d", lookup(TREE), max_depth=2)

    assert await walk_ancestors("d", lookup(TREE), max_depth=2, strict=False) == ["d", "c"]


async def test_walk_ancestors_missing_start_raises():
    with pytest.raises(LookupError):
        await walk_ancestors("zzz", lookup(TREE), max_depth=10, strict=False)


async def test_walk_ancestors_dangling_parent():
    dangling = {"a": "gone", "b": "a"}
    with pytest.raises(LookupError):
        await walk_ancestors("b", lookup(dangling), max_depth=10)

    assert await walk_ancestors("b", lookup(dangling), max_depth=10, strict=False) == ["b", "a"]


async def test_is_within_subtree():
    get_parent_id = lookup(TREE)
    assert await is_within_subtree("d", "b", get_parent_id, 10) == ["c", "d"]
    assert await is_within_subtree("b", "b", get_parent_id, 10) == []
    assert await is_within_subtree("a", "b", get_parent_id, 10) is None
    assert await is_within_subtree("x", "a", get_parent_id, 10) is None
    assert await is_within_subtree("missing", "a", get_parent_id, 10) is None


async def test_is_within_subtree_terminates_on_cycle():
    cyclic = {"root": None, "a": "c", "b": "a", "c": "b"}
    assert await is_within_subtree("a", "root", lookup(cyclic), 10) is None


async def test_is_within_subtree_depth_budget():
    assert await is_within_subtree("d", "a", lookup(TREE), 2) is None
    assert await is_within_subtree("d", "a", lookup(TREE), 3) == ["b", "c", "d"]
