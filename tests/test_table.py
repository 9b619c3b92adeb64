import unittest
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from DagFrame.expressions import Expr, col, lit, sum_
from DagFrame.table import Table


class TestTable(unittest.TestCase):

    def setUp(self):
        self.people = Table.from_frame(pd.DataFrame({
            "id": [1, 2, 3],
            "age": [30, 40, 50],
        }), name="people")
        self.pets = Table.from_frame(pd.DataFrame({
            "owner": [1, 1, 3, 4],
            "pet": ["cat", "dog", "fish", "bird"],
        }), name="pets")

    def test_operations_are_lazy(self):
        calls = []

        def compute():
            calls.append(1)
            return pd.DataFrame({"x": [1, 2, 3]})

        base = Table(compute)
        derived = base.filter(col("x") > 1).with_columns({"y": col("x") * 2})
        self.assertEqual(calls, [])
        self.assertEqual(derived.count(), 2)
        self.assertEqual(len(calls), 1)

    def test_lineage_depth(self):
        self.assertEqual(self.people.lineage_depth, 0)
        derived = self.people.filter(col("age") > 30).select("id")
        self.assertEqual(derived.lineage_depth, 2)
        joined = derived.join(self.pets, "id", "owner")
        self.assertEqual(joined.lineage_depth, 3)
        self.assertEqual(joined.materialize().lineage_depth, 0)

    def test_cache_pins_and_unpersist_releases(self):
        derived = self.people.with_columns({"older": col("age") + 1})
        derived.cache()
        self.assertFalse(derived.is_cached)
        derived.count()
        self.assertTrue(derived.is_cached)
        derived.count()
        derived.collect()
        self.assertEqual(derived.evaluations, 1)

        derived.unpersist()
        self.assertFalse(derived.is_cached)
        derived.count()
        self.assertEqual(derived.evaluations, 2)

    def test_uncached_table_recomputes(self):
        derived = self.people.select("id")
        derived.count()
        derived.count()
        self.assertEqual(derived.evaluations, 2)

    def test_select_with_expressions(self):
        result = self.people.select("id", (col("age") / 10).alias("decades")).collect()
        self.assertEqual(list(result.columns), ["id", "decades"])
        self.assertEqual(result["decades"].tolist(), [3.0, 4.0, 5.0])

    def test_select_requires_names(self):
        with self.assertRaises(ValueError):
            self.people.select(Expr(lambda frame: frame["age"]))

    def test_with_columns_sees_input_frame(self):
        result = self.people.with_columns([("age", col("age") + 1), ("copy", col("age"))]).collect()
        self.assertEqual(result["age"].tolist(), [31, 41, 51])
        self.assertEqual(result["copy"].tolist(), [30, 40, 50])

    def test_prefix(self):
        self.assertEqual(self.people.prefix("src").columns, ["src.id", "src.age"])

    def test_inner_join(self):
        result = self.people.join(self.pets, "id", "owner").collect()
        self.assertEqual(sorted(result["pet"].tolist()), ["cat", "dog", "fish"])

    def test_left_join_fills_null(self):
        counts = self.pets.group_agg("owner", sum_(lit(1)), "n").rename({"owner": "id"})
        result = self.people.join(counts, "id", how="left").collect().sort_values("id")
        self.assertEqual(result["n"].tolist()[:1], [2])
        self.assertTrue(pd.isna(result["n"].tolist()[1]))
        self.assertEqual(list(result.columns), ["id", "age", "n"])

    def test_unsupported_join(self):
        with self.assertRaises(ValueError):
            self.people.join(self.pets, "id", "owner", how="outer")

    def test_semi_join(self):
        result = self.pets.semi_join(self.people, "owner", "id").collect()
        self.assertEqual(result["pet"].tolist(), ["cat", "dog", "fish"])
        self.assertEqual(list(result.columns), ["owner", "pet"])

    def test_union(self):
        result = self.people.union(self.people, self.people).collect()
        self.assertEqual(len(result), 9)
        self.assertEqual(list(result.index), list(range(9)))

    def test_group_agg(self):
        result = self.pets.group_agg("owner", sum_(lit(1)), "n").collect()
        self.assertEqual(dict(zip(result["owner"], result["n"])), {1: 2, 3: 1, 4: 1})

    def test_drop_and_rename(self):
        result = self.people.rename({"age": "years"}).drop("id")
        self.assertEqual(result.columns, ["years"])


if __name__ == "__main__":
    unittest.main()
