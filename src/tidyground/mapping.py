"""Apply functions over each element of a collection.

The helpers accept python lists, tuples and dictionaries,
pyarrow arrays, and tables or record batches
(in that case the elements are the columns, named by the column name).

Named collections (dictionaries, tables and record batches) produce
a dictionary with the same keys, everything else produces a list::

    >>> map_(len, {"a": [1, 2], "b": [3]})
    {'a': 2, 'b': 1}

The typed variants return a :class:`pyarrow.Array` of the declared
type and fail with :class:`MapTypeError` when a result can't be
represented by that type, instead of silently converting it::

    >>> map_int(len, [[1, 2], [3]]).to_pylist()
    [2, 1]
    >>> map_int(str, [1])
    Traceback (most recent call last):
        ...
    tidyground.mapping.MapTypeError: Can't store element 0 ('1', a str) as int64

``None`` results are always accepted and represent a missing value.
"""

import functools
import itertools
from typing import Any, Callable, Iterable, Mapping

import pyarrow as pa

_MISSING = object()


class MapTypeError(TypeError):
    """A function returned a value that the declared output type can't hold."""

    def __init__(self, position: Any, value: Any, target: pa.DataType) -> None:
        self.position = position
        self.value = value
        self.target = target
        super().__init__(
            f"Can't store element {position} ({value!r}, a {type(value).__name__}) as {target}"
        )


def _items(data: Any) -> tuple[list, list, bool]:
    """Split a collection in its keys and values.

    Returns the keys, the values and whether the keys are names
    or just the positions of the values.
    """
    if isinstance(data, Mapping):
        return list(data.keys()), list(data.values()), True
    elif isinstance(data, (pa.Table, pa.RecordBatch)):
        return list(data.column_names), list(data.columns), True
    elif isinstance(data, (pa.Array, pa.ChunkedArray)):
        values = data.to_pylist()
    elif isinstance(data, (str, bytes)):
        raise TypeError("Can't map over a string, wrap it in a list")
    else:
        values = list(data)
    return list(range(len(values))), values, False


def _rebuild(keys: list, values: list, named: bool) -> dict | list:
    return dict(zip(keys, values)) if named else values


def _is_integral(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, int) or (isinstance(value, float) and value.is_integer())


TYPE_CHECKS: dict[str, tuple[pa.DataType, Callable[[Any], bool]]] = {
    "int": (pa.int64(), _is_integral),
    "dbl": (
        pa.float64(),
        lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    ),
    "chr": (pa.string(), lambda v: isinstance(v, str)),
    "lgl": (pa.bool_(), lambda v: isinstance(v, bool)),
}


def _typed(results: Iterable, kind: str) -> pa.Array:
    """Convert the results to an array of the declared kind, checking each value."""
    target, check = TYPE_CHECKS[kind]
    values = []
    for position, value in enumerate(results):
        if isinstance(value, pa.Scalar):
            value = value.as_py()
        if value is not None and not check(value):
            raise MapTypeError(position, value, target)
        if kind == "int" and value is not None:
            value = int(value)
        values.append(value)
    return pa.array(values, type=target)


def _zipped(inputs: tuple) -> list[tuple]:
    """Zip the values of multiple collections, recycling the ones of length 1."""
    if not inputs:
        raise ValueError("At least one input is required")
    columns = [_items(i)[1] for i in inputs]
    size = max(len(c) for c in columns)
    for idx, c in enumerate(columns):
        if len(c) == 1 and size != 1:
            columns[idx] = c * size
        elif len(c) != size:
            raise ValueError(
                f"Input {idx} has {len(c)} elements, expected {size} or 1"
            )
    return list(zip(*columns))


def map_(f: Callable[[Any], Any], data: Any) -> dict | list:
    """Apply ``f`` to each element of ``data``."""
    keys, values, named = _items(data)
    return _rebuild(keys, [f(v) for v in values], named)


def map_int(f: Callable[[Any], Any], data: Any) -> pa.Array:
    """Like :func:`map_` returning an array of integers, keys are not preserved."""
    return _typed((f(v) for v in _items(data)[1]), "int")


def map_dbl(f: Callable[[Any], Any], data: Any) -> pa.Array:
    """Like :func:`map_` returning an array of floats, keys are not preserved."""
    return _typed((f(v) for v in _items(data)[1]), "dbl")


def map_chr(f: Callable[[Any], Any], data: Any) -> pa.Array:
    """Like :func:`map_` returning an array of strings, keys are not preserved."""
    return _typed((f(v) for v in _items(data)[1]), "chr")


def map_lgl(f: Callable[[Any], Any], data: Any) -> pa.Array:
    """Like :func:`map_` returning an array of booleans, keys are not preserved."""
    return _typed((f(v) for v in _items(data)[1]), "lgl")


def map2(f: Callable[[Any, Any], Any], x: Any, y: Any) -> list:
    """Apply ``f`` to pairs of elements taken from ``x`` and ``y``."""
    return [f(a, b) for a, b in _zipped((x, y))]


def map2_int(f: Callable[[Any, Any], Any], x: Any, y: Any) -> pa.Array:
    return _typed(map2(f, x, y), "int")


def map2_dbl(f: Callable[[Any, Any], Any], x: Any, y: Any) -> pa.Array:
    return _typed(map2(f, x, y), "dbl")


def map2_chr(f: Callable[[Any, Any], Any], x: Any, y: Any) -> pa.Array:
    return _typed(map2(f, x, y), "chr")


def map2_lgl(f: Callable[[Any, Any], Any], x: Any, y: Any) -> pa.Array:
    return _typed(map2(f, x, y), "lgl")


def pmap(f: Callable[..., Any], *inputs: Any) -> list:
    """Apply ``f`` to the elements at the same position in each input.

    >>> pmap(lambda a, b, c: a + b + c, [1, 2], [10, 20], [100])
    [111, 122]
    """
    return [f(*args) for args in _zipped(inputs)]


def imap(f: Callable[[Any, Any], Any], data: Any) -> dict | list:
    """Apply ``f`` to each element and its name, or its position for unnamed collections."""
    keys, values, named = _items(data)
    return _rebuild(keys, [f(v, k) for k, v in zip(keys, values)], named)


def map_if(f: Callable[[Any], Any], data: Any, predicate: Callable[[Any], bool]) -> dict | list:
    """Apply ``f`` only to the elements for which ``predicate`` is true.

    The other elements are kept as they are.
    """
    keys, values, named = _items(data)
    return _rebuild(keys, [f(v) if predicate(v) else v for v in values], named)


def keep(data: Any, predicate: Callable[[Any], bool]) -> dict | list:
    """Only the elements for which ``predicate`` is true."""
    keys, values, named = _items(data)
    pairs = [(k, v) for k, v in zip(keys, values) if predicate(v)]
    return _rebuild([k for k, _ in pairs], [v for _, v in pairs], named)


def discard(data: Any, predicate: Callable[[Any], bool]) -> dict | list:
    """Only the elements for which ``predicate`` is false."""
    return keep(data, lambda v: not predicate(v))


def reduce_(f: Callable[[Any, Any], Any], data: Any, initial: Any = _MISSING) -> Any:
    """Combine the elements from left to right into a single value."""
    values = _items(data)[1]
    if initial is _MISSING:
        if not values:
            raise ValueError("Can't reduce an empty collection without an initial value")
        return functools.reduce(f, values)
    return functools.reduce(f, values, initial)


def accumulate(f: Callable[[Any, Any], Any], data: Any, initial: Any = _MISSING) -> list:
    """Like :func:`reduce_` but returns all the intermediate results.

    >>> accumulate(lambda a, b: a + b, [1, 2, 3])
    [1, 3, 6]
    """
    values = _items(data)[1]
    if initial is _MISSING:
        return list(itertools.accumulate(values, f))
    return list(itertools.accumulate(values, f, initial=initial))
