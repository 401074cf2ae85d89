import pytest

from catalog_paths.services import CategoryTree
from catalog_paths.services.category_store import CategoryRecord
from catalog_paths.services.exceptions import CycleDetected


def _family():
    # 1 -> (2, 3); 2 -> (4, 5); 3 -> (6, 7)
    return [
        CategoryRecord(id=1, name="Root", slug="root"),
        CategoryRecord(id=2, name="Left", slug="left", parent_id=1),
        CategoryRecord(id=3, name="Right", slug="right", parent_id=1),
        CategoryRecord(id=4, name="Left A", slug="left-a", parent_id=2),
        CategoryRecord(id=5, name="Left B", slug="left-b", parent_id=2),
        CategoryRecord(id=6, name="Right A", slug="right-a", parent_id=3),
        CategoryRecord(id=7, name="Right B", slug="right-b", parent_id=3),
        CategoryRecord(id=8, name="Other", slug="other"),
    ]


def test_build_assigns_levels_and_children():
    tree = CategoryTree.build(_family())

    assert [root.id for root in tree.roots] == [1, 8]
    assert len(tree) == 8
    assert tree.get(1).level == 0
    assert [child.id for child in tree.get(1).children] == [2, 3]
    assert {tree.get(i).level for i in (2, 3)} == {1}
    assert {tree.get(i).level for i in (4, 5, 6, 7)} == {2}


def test_parent_outside_the_set_makes_a_root():
    records = [record for record in _family() if record.id != 1]

    tree = CategoryTree.build(records)

    assert sorted(root.id for root in tree.roots) == [2, 3, 8]
    assert tree.get(2).level == 0
    assert tree.get(4).level == 1


def test_empty_input_builds_empty_forest():
    tree = CategoryTree.build([])

    assert tree.roots == []
    assert tree.to_schema() == []


def test_selecting_a_node_selects_all_descendants():
    tree = CategoryTree.build(_family())

    selected = tree.select(1)

    assert selected == {1, 2, 3, 4, 5, 6, 7}
    assert tree.deselect(1, selected) == set()


def test_selection_is_idempotent():
    tree = CategoryTree.build(_family())
    selected = tree.select(2, {4})

    assert selected == {2, 4, 5}
    assert tree.select(2, selected) == selected
    assert tree.select(4, selected) == selected


def test_deselect_keeps_unrelated_ids():
    tree = CategoryTree.build(_family())

    assert tree.deselect(3, {1, 2, 3, 6, 8}) == {1, 2, 8}


def test_toggle_flips_whole_subtree():
    tree = CategoryTree.build(_family())

    selected = tree.toggle(2)
    assert selected == {2, 4, 5}
    assert tree.toggle(2, selected) == set()


def test_unknown_id_leaves_selection_untouched():
    tree = CategoryTree.build(_family())

    assert tree.select(99, {1}) == {1}
    assert tree.descendant_ids(99) == set()


def test_descendants_can_exclude_self():
    tree = CategoryTree.build(_family())

    assert tree.descendant_ids(3, include_self=False) == {6, 7}


def test_iter_nodes_is_pre_order():
    tree = CategoryTree.build(_family())

    assert [node.id for node in tree.iter_nodes()] == [1, 2, 4, 5, 3, 6, 7, 8]


def test_bulk_paths_match_tree_shape():
    paths = CategoryTree.build(_family()).paths()

    assert paths[5].full_path == "root/left/left-b"
    assert paths[5].ids == [1, 2, 5]
    assert paths[8].full_path == "other"


def test_to_schema_nests_children():
    schema = CategoryTree.build(_family()).to_schema()

    assert schema[0].slug == "root"
    assert schema[0].children[1].children[0].slug == "right-a"
    assert schema[0].children[1].children[0].level == 2


def test_cycle_is_rejected():
    records = [
        CategoryRecord(id=1, name="Root", slug="root"),
        CategoryRecord(id=2, name="A", slug="a", parent_id=3),
        CategoryRecord(id=3, name="B", slug="b", parent_id=2),
    ]

    with pytest.raises(CycleDetected) as excinfo:
        CategoryTree.build(records)

    assert excinfo.value.chain == [2, 3]


def test_self_parent_is_rejected():
    with pytest.raises(CycleDetected):
        CategoryTree.build([CategoryRecord(id=1, name="Loop", slug="loop", parent_id=1)])
