"""Elementwise string functions.

All the functions accept a sequence of texts: a python list,
a :class:`pyarrow.Array`, a :class:`pyarrow.ChunkedArray` or
a categorical (dictionary) array, and return a :class:`pyarrow.Array`
with one entry for each text.

Patterns are regular expressions unless wrapped in :func:`fixed`,
in that case they are matched literally::

    >>> str_count(["bananageddon"], fixed("na")).to_pylist()
    [2]

Pattern arguments are vectorized too. A single pattern applies
to all the texts, a sequence of patterns pairs each pattern with
the text at the same position, and a single text is checked
against every pattern::

    >>> str_detect(["apple", "banana"], ["^a", "^a"]).to_pylist()
    [True, False]
    >>> str_detect("banana", ["an", "x"]).to_pylist()
    [True, False]

When nothing matches, the result is null, never an empty string,
so that a missing match can be told apart from an empty one.
Positions are zero based and ranges exclude their end,
like python slicing and :func:`str_sub`.
"""

import dataclasses
import re
from typing import Any, Callable, Iterable, Sequence

import pyarrow as pa
import pyarrow.compute as pc

TextValues = str | Sequence[str | None] | pa.Array | pa.ChunkedArray


@dataclasses.dataclass(frozen=True)
class Pattern:
    """A pattern to search in texts.

    :param pattern: The text of the pattern.
    :param fixed: Match the pattern literally instead of as a regular expression.
    :param ignore_case: Match ignoring upper and lower case differences.
    """

    pattern: str
    fixed: bool = False
    ignore_case: bool = False

    def as_regex(self) -> str:
        """The pattern as a regular expression usable by compute kernels."""
        expr = re.escape(self.pattern) if self.fixed else self.pattern
        if self.ignore_case:
            expr = f"(?i){expr}"
        return expr

    def compile(self) -> re.Pattern:
        flags = re.IGNORECASE if self.ignore_case else 0
        return re.compile(
            re.escape(self.pattern) if self.fixed else self.pattern, flags
        )


def fixed(pattern: str, ignore_case: bool = False) -> Pattern:
    """Match ``pattern`` literally."""
    return Pattern(pattern, fixed=True, ignore_case=ignore_case)


def regex(pattern: str, ignore_case: bool = False) -> Pattern:
    """Match ``pattern`` as a regular expression."""
    return Pattern(pattern, fixed=False, ignore_case=ignore_case)


PatternValues = str | Pattern | Sequence[str | Pattern | None] | pa.Array


def as_text_array(values: TextValues) -> pa.Array:
    """Convert any supported sequence of texts to a :class:`pyarrow.StringArray`.

    Categorical arrays are decoded to their labels.
    """
    if isinstance(values, str):
        values = [values]
    if isinstance(values, pa.ChunkedArray):
        values = values.combine_chunks()
    if not isinstance(values, pa.Array):
        return pa.array(values, type=pa.string())
    if pa.types.is_dictionary(values.type):
        values = values.dictionary_decode()
    if pa.types.is_null(values.type):
        values = values.cast(pa.string())
    if not (pa.types.is_string(values.type) or pa.types.is_large_string(values.type)):
        raise TypeError(f"Expected text values, got {values.type}")
    return values


def _as_patterns(pattern: PatternValues) -> list[Pattern | None]:
    if isinstance(pattern, (str, Pattern)):
        pattern = [pattern]
    elif isinstance(pattern, (pa.Array, pa.ChunkedArray)):
        pattern = as_text_array(pattern).to_pylist()
    patterns = [Pattern(p) if isinstance(p, str) else p for p in pattern]
    if not patterns:
        raise ValueError("At least one pattern is required")
    for p in patterns:
        if p is not None and not isinstance(p, Pattern):
            raise TypeError(f"Invalid pattern: {p!r}")
    return patterns


def _apply_one(
    texts: pa.Array, pattern: Pattern | None, func: Callable[[pa.Array, Pattern], pa.Array]
) -> pa.Array:
    if pattern is None:
        # A missing pattern matches nothing, the result type comes from the function.
        result = func(texts.slice(0, 0), Pattern("x"))
        return pa.nulls(len(texts), type=result.type)
    return func(texts, pattern)


def _apply_by_pattern(
    values: TextValues,
    pattern: PatternValues,
    func: Callable[[pa.Array, Pattern], pa.Array],
) -> pa.Array:
    """Apply ``func`` to the texts, broadcasting texts and patterns.

    Rows sharing the same pattern are processed together by a
    single call to ``func``, the partial results are then
    put back in the original order of the rows.
    """
    texts = as_text_array(values)
    patterns = _as_patterns(pattern)
    if len(patterns) == 1:
        return _apply_one(texts, patterns[0], func)

    if len(texts) == 1:
        texts = pa.array([texts[0].as_py()] * len(patterns), type=texts.type)
    elif len(texts) != len(patterns):
        raise ValueError(
            f"Can't pair {len(texts)} texts with {len(patterns)} patterns, "
            "lengths must match or one of them must be 1"
        )

    groups: dict[Pattern | None, list[int]] = {}
    for idx, p in enumerate(patterns):
        groups.setdefault(p, []).append(idx)

    parts = []
    order: list[int] = []
    for p, indices in groups.items():
        parts.append(_apply_one(texts.take(pa.array(indices)), p, func))
        order.extend(indices)
    return pa.concat_arrays(parts).take(pc.sort_indices(pa.array(order)))


def _per_text(
    texts: pa.Array, func: Callable[[str], Any], result_type: pa.DataType
) -> pa.Array:
    """Run a python function on each non null text."""
    return pa.array(
        [None if t is None else func(t) for t in texts.to_pylist()], type=result_type
    )


# Detection


def str_detect(values: TextValues, pattern: PatternValues, negate: bool = False) -> pa.Array:
    """Detect if each text contains a match of the pattern."""

    def _detect(texts: pa.Array, p: Pattern) -> pa.Array:
        if p.fixed:
            return pc.match_substring(texts, p.pattern, ignore_case=p.ignore_case)
        return pc.match_substring_regex(texts, p.pattern, ignore_case=p.ignore_case)

    result = _apply_by_pattern(values, pattern, _detect)
    return pc.invert(result) if negate else result


def str_starts(values: TextValues, pattern: PatternValues, negate: bool = False) -> pa.Array:
    """Detect if each text starts with the pattern."""

    def _starts(texts: pa.Array, p: Pattern) -> pa.Array:
        if p.fixed:
            return pc.starts_with(texts, p.pattern, ignore_case=p.ignore_case)
        return pc.match_substring_regex(
            texts, f"^(?:{p.pattern})", ignore_case=p.ignore_case
        )

    result = _apply_by_pattern(values, pattern, _starts)
    return pc.invert(result) if negate else result


def str_ends(values: TextValues, pattern: PatternValues, negate: bool = False) -> pa.Array:
    """Detect if each text ends with the pattern."""

    def _ends(texts: pa.Array, p: Pattern) -> pa.Array:
        if p.fixed:
            return pc.ends_with(texts, p.pattern, ignore_case=p.ignore_case)
        return pc.match_substring_regex(
            texts, f"(?:{p.pattern})$", ignore_case=p.ignore_case
        )

    result = _apply_by_pattern(values, pattern, _ends)
    return pc.invert(result) if negate else result


def str_count(values: TextValues, pattern: PatternValues) -> pa.Array:
    """Count the non overlapping matches of the pattern in each text."""

    def _count(texts: pa.Array, p: Pattern) -> pa.Array:
        if p.fixed:
            counts = pc.count_substring(texts, p.pattern, ignore_case=p.ignore_case)
        else:
            counts = pc.count_substring_regex(
                texts, p.pattern, ignore_case=p.ignore_case
            )
        return counts.cast(pa.int64())

    return _apply_by_pattern(values, pattern, _count)


def str_which(values: TextValues, pattern: PatternValues, negate: bool = False) -> pa.Array:
    """Positions of the texts that match the pattern."""
    mask = pc.fill_null(str_detect(values, pattern, negate=negate), False)
    return pc.indices_nonzero(mask).cast(pa.int64())


def str_subset(values: TextValues, pattern: PatternValues, negate: bool = False) -> pa.Array:
    """Only the texts that match the pattern."""
    texts = as_text_array(values)
    mask = pc.fill_null(str_detect(texts, pattern, negate=negate), False)
    if len(mask) != len(texts):
        raise ValueError("str_subset requires one pattern or one pattern per text")
    return texts.filter(mask)


# Location and extraction

LOCATION_TYPE = pa.struct([("start", pa.int64()), ("end", pa.int64())])


def str_locate(values: TextValues, pattern: PatternValues) -> pa.Array:
    """Locate the first match of the pattern in each text.

    Returns a struct array with the ``start`` and ``end`` of the
    match, null when there isn't any.
    """

    def _locate(texts: pa.Array, p: Pattern) -> pa.Array:
        compiled = p.compile()

        def _first(text: str) -> dict | None:
            m = compiled.search(text)
            return {"start": m.start(), "end": m.end()} if m else None

        return _per_text(texts, _first, LOCATION_TYPE)

    return _apply_by_pattern(values, pattern, _locate)


def str_locate_all(values: TextValues, pattern: PatternValues) -> pa.Array:
    """Locate all the matches of the pattern in each text."""

    def _locate_all(texts: pa.Array, p: Pattern) -> pa.Array:
        compiled = p.compile()
        return _per_text(
            texts,
            lambda t: [{"start": m.start(), "end": m.end()} for m in compiled.finditer(t)],
            pa.list_(LOCATION_TYPE),
        )

    return _apply_by_pattern(values, pattern, _locate_all)


def str_extract(values: TextValues, pattern: PatternValues, group: int | str | None = None) -> pa.Array:
    """Extract the first match of the pattern from each text.

    :param group: When provided, extract only that capture group of the match.
    """

    def _extract(texts: pa.Array, p: Pattern) -> pa.Array:
        compiled = p.compile()

        def _first(text: str) -> str | None:
            m = compiled.search(text)
            return m.group(group or 0) if m else None

        return _per_text(texts, _first, pa.string())

    return _apply_by_pattern(values, pattern, _extract)


def str_extract_all(values: TextValues, pattern: PatternValues) -> pa.Array:
    """Extract all the matches of the pattern, an empty list when none."""

    def _extract_all(texts: pa.Array, p: Pattern) -> pa.Array:
        compiled = p.compile()
        return _per_text(
            texts,
            lambda t: [m.group(0) for m in compiled.finditer(t)],
            pa.list_(pa.string()),
        )

    return _apply_by_pattern(values, pattern, _extract_all)


def str_match(values: TextValues, pattern: PatternValues) -> pa.Array:
    """The first match and its capture groups.

    Each entry is a list containing the whole match followed
    by each capture group, or null when the text doesn't match.
    """

    def _match(texts: pa.Array, p: Pattern) -> pa.Array:
        compiled = p.compile()

        def _first(text: str) -> list | None:
            m = compiled.search(text)
            return [m.group(0), *m.groups()] if m else None

        return _per_text(texts, _first, pa.list_(pa.string()))

    return _apply_by_pattern(values, pattern, _match)


def str_match_all(values: TextValues, pattern: PatternValues) -> pa.Array:
    """All matches with their capture groups, an empty list when none."""

    def _match_all(texts: pa.Array, p: Pattern) -> pa.Array:
        compiled = p.compile()
        return _per_text(
            texts,
            lambda t: [[m.group(0), *m.groups()] for m in compiled.finditer(t)],
            pa.list_(pa.list_(pa.string())),
        )

    return _apply_by_pattern(values, pattern, _match_all)


# Modification


def _replacer(replacement: str, max_replacements: int | None) -> Callable:
    def _replace(texts: pa.Array, p: Pattern) -> pa.Array:
        if p.fixed and not p.ignore_case:
            return pc.replace_substring(
                texts, p.pattern, replacement, max_replacements=max_replacements
            )
        return pc.replace_substring_regex(
            texts, p.as_regex(), replacement, max_replacements=max_replacements
        )

    return _replace


def str_replace(values: TextValues, pattern: PatternValues, replacement: str) -> pa.Array:
    """Replace the first match of the pattern.

    With regular expressions ``\\1``, ``\\2`` ... in the replacement
    refer to the capture groups of the match.
    """
    return _apply_by_pattern(values, pattern, _replacer(replacement, 1))


def str_replace_all(values: TextValues, pattern: PatternValues, replacement: str) -> pa.Array:
    """Replace all the matches of the pattern."""
    return _apply_by_pattern(values, pattern, _replacer(replacement, None))


def str_remove(values: TextValues, pattern: PatternValues) -> pa.Array:
    """Remove the first match of the pattern."""
    return str_replace(values, pattern, "")


def str_remove_all(values: TextValues, pattern: PatternValues) -> pa.Array:
    """Remove all the matches of the pattern."""
    return str_replace_all(values, pattern, "")


def str_split(values: TextValues, pattern: PatternValues, n: int | None = None) -> pa.Array:
    """Split each text around the matches of the pattern.

    :param n: Maximum number of pieces, the last piece
              contains the rest of the text unsplit.
    """
    if n is not None and n < 1:
        raise ValueError("n must be a positive number of pieces")
    max_splits = None if n is None else n - 1

    def _split(texts: pa.Array, p: Pattern) -> pa.Array:
        if not p.pattern:
            raise ValueError("Can't split around an empty pattern")
        if p.fixed and not p.ignore_case:
            return pc.split_pattern(texts, p.pattern, max_splits=max_splits)
        return pc.split_pattern_regex(texts, p.as_regex(), max_splits=max_splits)

    return _apply_by_pattern(values, pattern, _split)


# Other helpers


def str_length(values: TextValues) -> pa.Array:
    """Number of characters in each text."""
    return pc.utf8_length(as_text_array(values)).cast(pa.int64())


def str_sub(values: TextValues, start: int = 0, end: int | None = None) -> pa.Array:
    """Slice each text like python does, negative positions count from the end."""
    return pc.utf8_slice_codeunits(as_text_array(values), start=start, stop=end)


def str_pad(values: TextValues, width: int, side: str = "left", pad: str = " ") -> pa.Array:
    """Pad each text up to ``width`` characters.

    :param side: Where to add the padding, ``left``, ``right`` or ``both``.
    """
    texts = as_text_array(values)
    if side == "left":
        return pc.utf8_lpad(texts, width=width, padding=pad)
    elif side == "right":
        return pc.utf8_rpad(texts, width=width, padding=pad)
    elif side == "both":
        return pc.utf8_center(texts, width=width, padding=pad)
    raise ValueError(f"Invalid side {side!r}, must be one of left, right or both")


def str_trunc(values: TextValues, width: int, side: str = "right", ellipsis: str = "...") -> pa.Array:
    """Truncate the texts longer than ``width``, marking the cut with ``ellipsis``."""
    if width < len(ellipsis):
        raise ValueError("width can't be shorter than the ellipsis")
    texts = as_text_array(values)
    keep = width - len(ellipsis)
    if side == "right":
        cut = pc.binary_join_element_wise(
            pc.utf8_slice_codeunits(texts, start=0, stop=keep), ellipsis, ""
        )
    elif side == "left":
        cut = pc.binary_join_element_wise(
            ellipsis,
            pc.utf8_slice_codeunits(texts, start=-keep) if keep else pa.scalar(""),
            "",
        )
    else:
        raise ValueError(f"Invalid side {side!r}, must be left or right")
    return pc.if_else(pc.greater(pc.utf8_length(texts), width), cut, texts)


def str_trim(values: TextValues, side: str = "both") -> pa.Array:
    """Remove whitespace from the start and/or end of each text."""
    texts = as_text_array(values)
    if side == "both":
        return pc.utf8_trim_whitespace(texts)
    elif side == "left":
        return pc.utf8_ltrim_whitespace(texts)
    elif side == "right":
        return pc.utf8_rtrim_whitespace(texts)
    raise ValueError(f"Invalid side {side!r}, must be one of left, right or both")


def str_squish(values: TextValues) -> pa.Array:
    """Trim the texts and reduce internal runs of whitespace to a single space."""
    return pc.replace_substring_regex(str_trim(values), r"\s+", " ")


def str_to_upper(values: TextValues) -> pa.Array:
    return pc.utf8_upper(as_text_array(values))


def str_to_lower(values: TextValues) -> pa.Array:
    return pc.utf8_lower(as_text_array(values))


def str_to_title(values: TextValues) -> pa.Array:
    return pc.utf8_title(as_text_array(values))


def str_c(*values: TextValues | Iterable[str], sep: str = "", collapse: str | None = None) -> pa.Array | pa.Scalar:
    """Join multiple texts element by element.

    Plain strings and one element sequences are recycled
    against the longer ones. A null in any input gives a null.

    >>> str_c(["a", "b"], "x", sep="-").to_pylist()
    ['a-x', 'b-x']

    :param sep: Inserted between the joined values of each row.
    :param collapse: When provided the rows are joined as well,
                     returning a single string scalar.
    """
    if not values:
        raise ValueError("str_c requires at least one value")
    arrays = [as_text_array(v) for v in values]
    size = max(len(a) for a in arrays)
    args: list[pa.Array | pa.Scalar] = []
    for a in arrays:
        if len(a) == 1 and size != 1:
            args.append(a[0])
        elif len(a) == size:
            args.append(a)
        else:
            raise ValueError(
                f"Can't recycle a sequence of {len(a)} texts to {size} rows"
            )
    joined = pc.binary_join_element_wise(*args, sep)
    if collapse is None:
        return joined
    rows = joined.to_pylist()
    if any(r is None for r in rows):
        return pa.scalar(None, type=pa.string())
    return pa.scalar(collapse.join(rows), type=pa.string())
