from tidyground.compute import CSVDataSource, FilterNode
from tidyground.expr import compile_expression

query = FilterNode(
    compile_expression("Product = 'Laptop' AND Price > 50"),
    CSVDataSource("data/sales.csv", block_size=16 * 1024),
)
for batch in query.batches():
    print("---")
    print(batch.select(["Product", "Price"]))
