import pyarrow as pa
import pytest

from tidyground import categorical as fct

SIZES = ["small", "large", "small", None, "medium", "small"]
SIZE_LEVELS = ["small", "medium", "large"]


@pytest.fixture
def sizes():
    return fct.factor(SIZES, levels=SIZE_LEVELS)


def test_factor_default_levels_are_sorted():
    arr = fct.factor(["b", "c", "a", "b"])
    assert fct.levels(arr) == ["a", "b", "c"]
    assert arr.to_pylist() == ["b", "c", "a", "b"]


def test_factor_values_outside_levels_are_missing():
    arr = fct.factor(["a", "z"], levels=["a", "b"])
    assert arr.to_pylist() == ["a", None]
    assert fct.levels(arr) == ["a", "b"]


def test_factor_duplicate_levels():
    with pytest.raises(ValueError):
        fct.factor(["a"], levels=["a", "a"])


def test_factor_ordered():
    assert fct.factor(["a"], ordered=True).type.ordered
    assert not fct.factor(["a"]).type.ordered


def test_as_factor_first_appearance():
    arr = fct.as_factor(["b", "c", "a", "b"])
    assert fct.levels(arr) == ["b", "c", "a"]
    assert fct.as_factor(arr) is arr


@pytest.mark.parametrize(
    "reorder",
    [
        lambda a: fct.reorder_levels(a, ["large", "small", "medium"]),
        lambda a: fct.relevel(a, "large"),
        lambda a: fct.rev_levels(a),
        lambda a: fct.infreq(a),
        lambda a: fct.reorder_by(a, [1, 5, 2, 0, 9, 3]),
    ],
)
def test_reordering_preserves_row_labels(sizes, reorder):
    reordered = reorder(sizes)
    assert reordered.to_pylist() == sizes.to_pylist()
    assert sorted(fct.levels(reordered)) == sorted(fct.levels(sizes))


def test_reorder_levels_requires_all_labels(sizes):
    with pytest.raises(ValueError):
        fct.reorder_levels(sizes, ["small", "large"])
    with pytest.raises(ValueError):
        fct.reorder_levels(sizes, ["small", "large", "huge"])
    with pytest.raises(ValueError):
        fct.reorder_levels(sizes, ["small", "small", "large"])


def test_relevel(sizes):
    assert fct.levels(fct.relevel(sizes, "large", "medium")) == ["large", "medium", "small"]
    with pytest.raises(ValueError):
        fct.relevel(sizes, "huge")


def test_infreq(sizes):
    assert fct.levels(fct.infreq(sizes)) == ["small", "medium", "large"]
    arr = fct.factor(["a", "b", "b", "c", "c", "c"])
    assert fct.levels(fct.infreq(arr)) == ["c", "b", "a"]


def test_reorder_by_summary():
    arr = fct.factor(["a", "b", "a", "c", "b"], levels=["a", "b", "c", "d"])
    by = [10, 1, 20, 5, 3]
    assert fct.levels(fct.reorder_by(arr, by)) == ["b", "c", "a", "d"]
    assert fct.levels(fct.reorder_by(arr, by, descending=True)) == ["a", "c", "b", "d"]
    assert fct.levels(fct.reorder_by(arr, by, fun="max")) == ["b", "c", "a", "d"]
    assert fct.levels(fct.reorder_by(arr, by, fun=lambda v: -len(v))) == ["a", "b", "c", "d"]


def test_reorder_by_errors():
    arr = fct.factor(["a", "b"])
    with pytest.raises(ValueError):
        fct.reorder_by(arr, [1])
    with pytest.raises(ValueError):
        fct.reorder_by(arr, [1, 2], fun="mode")


def test_relabel(sizes):
    relabeled = fct.relabel(sizes, {"small": "S", "large": "L"})
    assert fct.levels(relabeled) == ["S", "medium", "L"]
    assert relabeled.to_pylist() == ["S", "L", "S", None, "medium", "S"]
    assert fct.levels(fct.relabel(sizes, str.upper)) == ["SMALL", "MEDIUM", "LARGE"]


def test_relabel_duplicates_are_rejected(sizes):
    with pytest.raises(ValueError):
        fct.relabel(sizes, {"small": "big", "large": "big"})
    with pytest.raises(ValueError):
        fct.relabel(sizes, {"huge": "H"})


def test_collapse(sizes):
    collapsed = fct.collapse(sizes, {"not small": ["medium", "large"]})
    assert fct.levels(collapsed) == ["small", "not small"]
    assert collapsed.to_pylist() == [
        "small",
        "not small",
        "small",
        None,
        "not small",
        "small",
    ]
    with pytest.raises(ValueError):
        fct.collapse(sizes, {"x": ["small"], "y": ["small"]})


def test_lump():
    arr = fct.as_factor(["a", "b", "a", "c", "a", "b", "d"])
    lumped = fct.lump(arr, 2)
    assert fct.levels(lumped) == ["a", "b", "Other"]
    assert lumped.to_pylist() == ["a", "b", "a", "Other", "a", "b", "Other"]
    assert fct.lump(arr, 10) is arr
    with pytest.raises(ValueError):
        fct.lump(arr, -1)


def test_expand(sizes):
    expanded = fct.expand(sizes, "huge", "small", "huge")
    assert fct.levels(expanded) == ["small", "medium", "large", "huge"]
    assert expanded.to_pylist() == sizes.to_pylist()


def test_drop_unused():
    arr = fct.factor(["a", "c"], levels=["a", "b", "c", "d"])
    dropped = fct.drop_unused(arr)
    assert fct.levels(dropped) == ["a", "c"]
    assert dropped.to_pylist() == ["a", "c"]
    assert fct.drop_unused(dropped) is dropped
    assert fct.levels(fct.drop_unused(arr, only=["d"])) == ["a", "b", "c"]


def test_na_to_level(sizes):
    explicit = fct.na_to_level(sizes)
    assert explicit.null_count == 0
    assert explicit.to_pylist()[3] == "(Missing)"
    assert fct.levels(explicit)[-1] == "(Missing)"
    no_missing = fct.factor(["a"])
    assert fct.na_to_level(no_missing) is no_missing


def test_count_levels(sizes):
    counts = fct.count_levels(sizes)
    assert counts.to_pydict() == {
        "level": ["small", "medium", "large", None],
        "n": [3, 1, 1, 1],
    }


def test_count_levels_includes_unused():
    counts = fct.count_levels(fct.factor(["a"], levels=["a", "b"]))
    assert counts.to_pydict() == {"level": ["a", "b"], "n": [1, 0]}


def test_chunked_and_plain_values_are_accepted():
    chunked = pa.chunked_array([["x", "y"], ["x"]])
    assert fct.levels(fct.infreq(chunked)) == ["x", "y"]
