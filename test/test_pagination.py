import pyarrow as pa
import pytest

from tidyground.compute.base import QueryPlanNode
from tidyground.compute.pagination import PaginateNode


class MockQueryPlanNode(QueryPlanNode):
    def __init__(self, batches):
        self._batches = batches
        self.closed = False

    def batches(self):
        try:
            for batch in self._batches:
                yield batch
        finally:
            self.closed = True

    def __str__(self):
        return "MockQueryPlanNode"


@pytest.fixture
def child_node():
    return MockQueryPlanNode(
        [
            pa.record_batch({"values": [0, 1, 2]}),
            pa.record_batch({"values": [3, 4, 5]}),
            pa.record_batch({"values": [6, 7, 8]}),
        ]
    )


@pytest.mark.parametrize(
    "offset, length, expected",
    [
        (0, 2, [0, 1]),
        (1, 1, [1]),
        (2, 3, [2, 3, 4]),
        (4, 4, [4, 5, 6, 7]),
        (7, None, [7, 8]),
        (0, None, list(range(9))),
        (8, 10, [8]),
        (9, 1, []),
        (3, 0, []),
    ],
)
def test_paginate(child_node, offset, length, expected):
    paginate = PaginateNode(offset, length, child_node)
    values = [v for batch in paginate.batches() for v in batch["values"].to_pylist()]
    assert values == expected


def test_paginate_stops_consuming_child(child_node):
    paginate = PaginateNode(0, 2, child_node)
    assert len(list(paginate.batches())) == 1
    assert child_node.closed


def test_paginate_str(child_node):
    assert str(PaginateNode(2, 3, child_node)) == "PaginateNode(2:5, MockQueryPlanNode)"
    assert str(PaginateNode(2, None, child_node)) == "PaginateNode(2:, MockQueryPlanNode)"


def test_paginate_negative_values(child_node):
    with pytest.raises(ValueError):
        PaginateNode(-1, 2, child_node)
    with pytest.raises(ValueError):
        PaginateNode(0, -2, child_node)
