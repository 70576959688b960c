import pytest
import pyarrow as pa
import pyarrow.compute as pc
from tidyground.compute.expressions import CallableExpression, FunctionCallExpression
from tidyground.compute.base import ColumnRef, Literal, UnknownColumnError

@pytest.fixture
def sample_batch():
    return pa.RecordBatch.from_arrays(
        [pa.array([1, 2, 3, 4, 5]), pa.array(['a', 'b', 'c', 'd', 'e'])],
        names=['numbers', 'letters']
    )

def test_function_call_expression_init():
    expr = FunctionCallExpression(pc.add, ColumnRef('numbers'), 1)
    assert expr.func == pc.add
    assert len(expr.args) == 2
    assert isinstance(expr.args[0], ColumnRef)
    assert expr.args[1] == 1

def test_function_call_expression_str():
    expr = FunctionCallExpression(pc.add, ColumnRef('numbers'), 1)
    assert str(expr) == "pyarrow.compute.add(ColumnRef(numbers),1)"

def test_function_call_expression_apply_simple(sample_batch):
    expr = FunctionCallExpression(pc.add, ColumnRef('numbers'), 1)
    result = expr.apply(sample_batch)
    expected = pa.array([2, 3, 4, 5, 6])
    assert result.equals(expected)

def test_function_call_expression_apply_nested(sample_batch):
    inner_expr = FunctionCallExpression(pc.multiply, ColumnRef('numbers'), 2)
    outer_expr = FunctionCallExpression(pc.add, inner_expr, 1)
    result = outer_expr.apply(sample_batch)
    expected = pa.array([3, 5, 7, 9, 11])
    assert result.equals(expected)

def test_function_call_expression_apply_string_ops(sample_batch):
    expr = FunctionCallExpression(pc.utf8_upper, ColumnRef('letters'))
    result = expr.apply(sample_batch)
    expected = pa.array(['A', 'B', 'C', 'D', 'E'])
    assert result.equals(expected)

def test_function_call_expression_apply_comparison(sample_batch):
    expr = FunctionCallExpression(pc.greater, ColumnRef('numbers'), 3)
    result = expr.apply(sample_batch)
    expected = pa.array([False, False, False, True, True])
    assert result.equals(expected)

def test_function_call_expression_apply_multiple_args(sample_batch):
    expr = FunctionCallExpression(pc.if_else, 
                                  FunctionCallExpression(pc.greater, ColumnRef('numbers'), 3),
                                  ColumnRef('letters'),
                                  'x')
    result = expr.apply(sample_batch)
    expected = pa.array(['x', 'x', 'x', 'd', 'e'])
    assert result.equals(expected)

def test_function_call_expression_apply_null_handling(sample_batch):
    numbers_with_null = pa.array([1, None, 3, 4, 5])
    batch_with_null = pa.RecordBatch.from_arrays([numbers_with_null, sample_batch['letters']], names=['numbers', 'letters'])
    expr = FunctionCallExpression(pc.add, ColumnRef('numbers'), 1)
    result = expr.apply(batch_with_null)
    expected = pa.array([2, None, 4, 5, 6])
    assert result.equals(expected)

def test_function_call_expression_apply_invalid_column():
    batch = pa.RecordBatch.from_arrays([pa.array([1, 2, 3])], names=['numbers'])
    expr = FunctionCallExpression(pc.add, ColumnRef('non_existent'), 1)
    with pytest.raises(KeyError):
        expr.apply(batch)

def test_function_call_expression_apply_type_mismatch():
    batch = pa.RecordBatch.from_arrays([pa.array(['a', 'b', 'c'])], names=['letters'])
    expr = FunctionCallExpression(pc.add, ColumnRef('letters'), 1)
    with pytest.raises(pa.ArrowNotImplementedError):
        expr.apply(batch)

def test_function_call_expression_unknown_column_lists_available():
    batch = pa.RecordBatch.from_arrays([pa.array([1, 2, 3])], names=['numbers'])
    expr = FunctionCallExpression(pc.add, ColumnRef('non_existent'), 1)
    with pytest.raises(UnknownColumnError) as err:
        expr.apply(batch)
    assert str(err.value) == "Unknown column 'non_existent', available columns are: ['numbers']"

def test_function_call_expression_kwargs(sample_batch):
    expr = FunctionCallExpression(pc.match_substring, ColumnRef('letters'), pattern='A', ignore_case=True)
    assert expr.apply(sample_batch).to_pylist() == [True, False, False, False, False]
    assert str(expr) == "pyarrow.compute.match_substring(ColumnRef(letters),pattern='A',ignore_case=True)"

def test_function_call_expression_columns():
    expr = FunctionCallExpression(pc.add, ColumnRef('a'), FunctionCallExpression(pc.multiply, ColumnRef('b'), 2))
    assert expr.columns() == {'a', 'b'}

def test_literal_expression(sample_batch):
    expr = Literal(3)
    assert expr.apply(sample_batch) == pa.scalar(3)
    assert expr == Literal(3)
    assert expr.columns() == set()

def test_callable_expression(sample_batch):
    expr = CallableExpression(lambda batch: pc.greater(batch['numbers'], 3), columns=['numbers'])
    assert expr.apply(sample_batch).to_pylist() == [False, False, False, True, True]
    assert expr.columns() == {'numbers'}

def test_callable_expression_python_results(sample_batch):
    expr = CallableExpression(lambda batch: [n % 2 == 0 for n in batch['numbers'].to_pylist()])
    assert expr.apply(sample_batch).equals(pa.array([False, True, False, True, False]))
