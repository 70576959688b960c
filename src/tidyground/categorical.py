"""Categorical columns.

A categorical column is stored as a :class:`pyarrow.DictionaryArray`:
the dictionary holds the label set, in its meaningful order,
and each row holds an index into the labels, or null when missing.

The label set can contain labels that no row currently uses,
they are kept until explicitly pruned with :func:`drop_unused`.

    >>> sizes = factor(["small", "large", "small"], levels=["small", "medium", "large"])
    >>> levels(sizes)
    ['small', 'medium', 'large']
    >>> levels(rev_levels(sizes))
    ['large', 'medium', 'small']
    >>> rev_levels(sizes).to_pylist() == sizes.to_pylist()
    True

All functions return a new array, reordering functions only
change the order of the labels and never which label each row holds.
Relabeling functions change the text of the labels without
changing which rows share the same label.
"""

from typing import Any, Callable, Iterable, Mapping, Sequence

import pyarrow as pa
import pyarrow.compute as pc

Values = Sequence[Any] | pa.Array | pa.ChunkedArray


def _as_plain_array(values: Values) -> pa.Array:
    if isinstance(values, pa.ChunkedArray):
        values = values.combine_chunks()
    if not isinstance(values, pa.Array):
        values = pa.array(values)
    if pa.types.is_dictionary(values.type):
        values = values.dictionary_decode()
    return values


def _as_categorical(values: Values) -> pa.DictionaryArray:
    if isinstance(values, pa.ChunkedArray):
        values = values.combine_chunks()
    if isinstance(values, pa.DictionaryArray):
        return values
    return as_factor(values)


def _build(indices: pa.Array, labels: pa.Array, ordered: bool) -> pa.DictionaryArray:
    return pa.DictionaryArray.from_arrays(
        indices.cast(pa.int32()), labels, ordered=ordered
    )


def _remap(
    arr: pa.DictionaryArray, old_to_new: list[int | None], new_labels: list
) -> pa.DictionaryArray:
    """Move each row from its old label index to the new one.

    ``old_to_new[i]`` is the new position of the label that was at position ``i``.
    """
    lookup = pa.array(old_to_new, type=pa.int32())
    return _build(
        lookup.take(arr.indices),
        pa.array(new_labels, type=arr.dictionary.type),
        arr.type.ordered,
    )


def _check_unique(labels: Sequence) -> None:
    seen = set()
    duplicates = []
    for label in labels:
        if label in seen and label not in duplicates:
            duplicates.append(label)
        seen.add(label)
    if duplicates:
        raise ValueError(f"Labels must be unique, duplicated: {duplicates}")


def _check_known(arr: pa.DictionaryArray, labels: Iterable) -> None:
    known = set(levels(arr))
    unknown = [label for label in labels if label not in known]
    if unknown:
        raise ValueError(f"Unknown labels {unknown}, available labels are: {levels(arr)}")


# Construction


def factor(values: Values, levels: Sequence | None = None, ordered: bool = False) -> pa.DictionaryArray:
    """Build a categorical array.

    :param values: The value of each row.
    :param levels: The label set, defaults to the sorted distinct values.
                   Values not in the label set become missing.
    :param ordered: If the labels order is meaningful for comparisons.
    """
    arr = _as_plain_array(values)
    if levels is None:
        labels = pc.unique(arr).drop_null()
        labels = labels.take(pc.sort_indices(labels))
    else:
        _check_unique(levels)
        labels = pa.array(levels, type=None if pa.types.is_null(arr.type) else arr.type)
        arr = arr.cast(labels.type)
    return _build(pc.index_in(arr, value_set=labels), labels, ordered)


def as_factor(values: Values) -> pa.DictionaryArray:
    """Build a categorical array with labels in order of first appearance.

    Categorical arrays are returned as they are.
    """
    if isinstance(values, pa.ChunkedArray):
        values = values.combine_chunks()
    if isinstance(values, pa.DictionaryArray):
        return values
    arr = _as_plain_array(values)
    labels = pc.unique(arr).drop_null()
    return _build(pc.index_in(arr, value_set=labels), labels, False)


def levels(values: pa.DictionaryArray) -> list:
    """The label set of a categorical array."""
    return _as_categorical(values).dictionary.to_pylist()


# Relabeling


def relabel(values: Values, mapping: Mapping[Any, Any] | Callable[[Any], Any]) -> pa.DictionaryArray:
    """Change the text of the labels.

    :param mapping: A dictionary of ``{old: new}`` labels, labels missing
                    from it are left untouched, or a function
                    receiving each label and returning the new one.

    Two labels can't be renamed to the same one, use :func:`collapse`
    to merge labels.
    """
    arr = _as_categorical(values)
    if callable(mapping):
        new_labels = [mapping(label) for label in levels(arr)]
    else:
        _check_known(arr, mapping)
        new_labels = [mapping.get(label, label) for label in levels(arr)]
    _check_unique(new_labels)
    return _build(arr.indices, pa.array(new_labels), arr.type.ordered)


def collapse(values: Values, groups: Mapping[Any, Sequence]) -> pa.DictionaryArray:
    """Merge labels into new ones.

    >>> levels(collapse(["a", "b", "c"], {"ab": ["a", "b"]}))
    ['ab', 'c']

    :param groups: ``{new_label: [old labels]}``, the merged label
                   takes the position of the first of its old labels.
    """
    arr = _as_categorical(values)
    renames = {}
    for new_label, old_labels in groups.items():
        _check_known(arr, old_labels)
        for old in old_labels:
            if old in renames:
                raise ValueError(f"Label {old!r} is merged into more than one group")
            renames[old] = new_label

    new_labels: list = []
    old_to_new = []
    for label in levels(arr):
        target = renames.get(label, label)
        if target not in new_labels:
            new_labels.append(target)
        old_to_new.append(new_labels.index(target))
    return _remap(arr, old_to_new, new_labels)


def lump(values: Values, n: int, other_level: str = "Other") -> pa.DictionaryArray:
    """Keep the ``n`` most frequent labels, merging the others in ``other_level``.

    Ties are resolved by the current order of the labels,
    the ``other_level`` label is placed last.
    """
    if n < 0:
        raise ValueError("n must be zero or a positive number")
    arr = _as_categorical(values)
    labels = levels(arr)
    counts = _level_counts(arr)
    ranking = sorted(range(len(labels)), key=lambda i: -counts[i])
    kept = sorted(ranking[:n])
    if len(kept) == len(labels):
        return arr

    new_labels = [labels[i] for i in kept if labels[i] != other_level] + [other_level]
    old_to_new = [
        new_labels.index(label) if i in kept else len(new_labels) - 1
        for i, label in enumerate(labels)
    ]
    return _remap(arr, old_to_new, new_labels)


# Reordering


def reorder_levels(values: Values, new_order: Sequence) -> pa.DictionaryArray:
    """Set the order of the labels, ``new_order`` must contain all the labels."""
    arr = _as_categorical(values)
    labels = levels(arr)
    _check_unique(new_order)
    if len(new_order) != len(labels) or set(new_order) != set(labels):
        raise ValueError(
            f"New order {list(new_order)} must contain exactly the labels {labels}"
        )
    new_order = list(new_order)
    return _remap(arr, [new_order.index(label) for label in labels], new_order)


def relevel(values: Values, *first: Any) -> pa.DictionaryArray:
    """Move some labels at the beginning of the label set."""
    arr = _as_categorical(values)
    _check_known(arr, first)
    labels = levels(arr)
    return reorder_levels(arr, list(first) + [label for label in labels if label not in first])


SUMMARY_FUNCTIONS: dict[str, Callable[[pa.Array], pa.Scalar]] = {
    "median": lambda values: pc.quantile(values, q=0.5)[0],
    "mean": pc.mean,
    "sum": pc.sum,
    "min": pc.min,
    "max": pc.max,
    "count": pc.count,
}


def reorder_by(
    values: Values,
    by: Values,
    fun: str | Callable[[pa.Array], Any] = "median",
    descending: bool = False,
) -> pa.DictionaryArray:
    """Order the labels by a summary of another column.

    :param by: The values to summarise, one for each row.
    :param fun: The name of a summary function (``median``, ``mean``,
                ``sum``, ``min``, ``max``, ``count``) or a function
                receiving the values of a label and returning their summary.
    :param descending: Put the labels with the highest summary first.

    Labels without any value are placed last.
    """
    arr = _as_categorical(values)
    by = _as_plain_array(by)
    if len(by) != len(arr):
        raise ValueError(f"Expected {len(arr)} values to order by, got {len(by)}")
    if isinstance(fun, str):
        try:
            fun = SUMMARY_FUNCTIONS[fun]
        except KeyError:
            raise ValueError(
                f"Unknown summary function {fun!r}, available: {list(SUMMARY_FUNCTIONS)}"
            ) from None

    labels = levels(arr)
    summaries = []
    for idx in range(len(labels)):
        group_values = by.filter(pc.fill_null(pc.equal(arr.indices, idx), False))
        summary = fun(group_values.drop_null()) if len(group_values) else None
        if isinstance(summary, pa.Scalar):
            summary = summary.as_py()
        summaries.append(summary)

    present = [i for i, s in enumerate(summaries) if s is not None]
    present.sort(key=lambda i: summaries[i], reverse=descending)
    missing = [i for i, s in enumerate(summaries) if s is None]
    return reorder_levels(arr, [labels[i] for i in present + missing])


def infreq(values: Values) -> pa.DictionaryArray:
    """Order the labels from the most to the least frequent."""
    arr = _as_categorical(values)
    counts = _level_counts(arr)
    labels = levels(arr)
    order = sorted(range(len(labels)), key=lambda i: -counts[i])
    return reorder_levels(arr, [labels[i] for i in order])


def rev_levels(values: Values) -> pa.DictionaryArray:
    """Reverse the order of the labels."""
    arr = _as_categorical(values)
    return reorder_levels(arr, levels(arr)[::-1])


# Extending and pruning


def expand(values: Values, *labels: Any) -> pa.DictionaryArray:
    """Add labels at the end of the label set, labels already there are ignored."""
    arr = _as_categorical(values)
    current = levels(arr)
    added = [label for label in dict.fromkeys(labels) if label not in current]
    return _build(
        arr.indices,
        pa.array(current + added, type=arr.dictionary.type),
        arr.type.ordered,
    )


def drop_unused(values: Values, only: Iterable | None = None) -> pa.DictionaryArray:
    """Remove the labels that no row uses.

    :param only: Restrict the removal to these labels.
    """
    arr = _as_categorical(values)
    labels = levels(arr)
    counts = _level_counts(arr)
    candidates = set(labels) if only is None else set(only)
    keep = [i for i, label in enumerate(labels) if counts[i] or label not in candidates]
    if len(keep) == len(labels):
        return arr
    old_to_new: list[int | None] = [None] * len(labels)
    for new_idx, old_idx in enumerate(keep):
        old_to_new[old_idx] = new_idx
    return _remap(arr, old_to_new, [labels[i] for i in keep])


def na_to_level(values: Values, level: str = "(Missing)") -> pa.DictionaryArray:
    """Turn missing values into an explicit label."""
    arr = _as_categorical(values)
    if arr.null_count == 0:
        return arr
    arr = expand(arr, level)
    idx = levels(arr).index(level)
    return _build(pc.fill_null(arr.indices, idx), arr.dictionary, arr.type.ordered)


# Inspecting


def _level_counts(arr: pa.DictionaryArray) -> list[int]:
    counts = [0] * len(arr.dictionary)
    for item in pc.value_counts(arr.indices.drop_null()).to_pylist():
        counts[item["values"]] = item["counts"]
    return counts


def count_levels(values: Values) -> pa.RecordBatch:
    """Count the rows of each label, unused labels included.

    When there are missing values, they are counted in a last row with a null label.
    """
    arr = _as_categorical(values)
    labels = levels(arr)
    counts = _level_counts(arr)
    if arr.null_count:
        labels.append(None)
        counts.append(arr.null_count)
    return pa.RecordBatch.from_arrays(
        [
            pa.array(labels, type=arr.dictionary.type),
            pa.array(counts, type=pa.int64()),
        ],
        names=["level", "n"],
    )
