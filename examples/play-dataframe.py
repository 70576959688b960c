from tidyground.dataframe import Dataframe

sales = Dataframe.open_csv("data/sales.csv")

by_region = sales \
  .filter("Quantity >= 5 AND is_in(Product, 'Laptop', 'TV')") \
  .mutate(Total="Quantity * Price") \
  .group_by("Region", "Product") \
  .summarise("sum:Total") \
  .pivot_wider(names_from="Product", values_from="sum_Total", id_columns=["Region"]) \
  .arrange("Region") \
  .collect()

print(by_region)
