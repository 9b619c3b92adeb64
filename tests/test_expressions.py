import unittest
import sys
import os
import math
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
import pandas as pd

from DagFrame.expressions import (
    ExpressionError, col, lit, when, coalesce, greatest, least, udf,
    sum_, max_, min_, count, first, collect_list, agg_udf
)


class TestExpressions(unittest.TestCase):

    def setUp(self):
        self.frame = pd.DataFrame({
            "id": [1, 2, 3, 4],
            "value": [10.0, np.nan, 30.0, 5.0],
            "other": [1.0, 2.0, np.nan, 7.0],
        })

    def test_col_and_lit(self):
        self.assertEqual(col("id").evaluate(self.frame).tolist(), [1, 2, 3, 4])
        self.assertEqual(lit(7).evaluate(self.frame).tolist(), [7, 7, 7, 7])
        self.assertTrue(lit(None).evaluate(self.frame).isna().all())

    def test_unknown_column_raises(self):
        with self.assertRaises(ExpressionError):
            col("missing").evaluate(self.frame)

    def test_arithmetic_propagates_null(self):
        result = (col("value") + col("other")).evaluate(self.frame)
        self.assertEqual(result[0], 11.0)
        self.assertTrue(math.isnan(result[1]))
        self.assertTrue(math.isnan(result[2]))

    def test_reflected_arithmetic(self):
        result = (100 - col("id") * 2).evaluate(self.frame)
        self.assertEqual(result.tolist(), [98, 96, 94, 92])
        result = (1 / col("id")).evaluate(self.frame)
        self.assertAlmostEqual(result[3], 0.25)

    def test_comparison_with_null_is_false(self):
        self.assertEqual((col("value") > 6).evaluate(self.frame).tolist(), [True, False, True, False])
        self.assertEqual((col("value") != col("other")).evaluate(self.frame).tolist(), [True, False, False, True])

    def test_boolean_operators(self):
        both = ((col("id") > 1) & (col("other") > 1)).evaluate(self.frame)
        self.assertEqual(both.tolist(), [False, True, False, True])
        either = ((col("id") == 1) | (col("id") == 3)).evaluate(self.frame)
        self.assertEqual(either.tolist(), [True, False, True, False])
        self.assertEqual((~(col("id") == 1)).evaluate(self.frame).tolist(), [False, True, True, True])

    def test_null_checks(self):
        self.assertEqual(col("value").is_null().evaluate(self.frame).tolist(), [False, True, False, False])
        self.assertEqual(col("value").is_not_null().evaluate(self.frame).tolist(), [True, False, True, True])

    def test_when_without_otherwise_is_null(self):
        result = when(col("id") < 3, lit(42)).evaluate(self.frame)
        self.assertEqual(result[:2].tolist(), [42, 42])
        self.assertTrue(result[2:].isna().all())

    def test_when_otherwise_and_chaining(self):
        expr = when(col("id") == 1, "one").when(col("id") == 2, "two").otherwise("many")
        self.assertEqual(expr.evaluate(self.frame).tolist(), ["one", "two", "many", "many"])

    def test_when_null_condition_falls_through(self):
        expr = when(col("value") > 6, col("value")).otherwise(lit(0.0))
        self.assertEqual(expr.evaluate(self.frame).tolist(), [10.0, 0.0, 30.0, 0.0])

    def test_coalesce(self):
        result = coalesce(col("value"), col("other"), lit(-1.0)).evaluate(self.frame)
        self.assertEqual(result.tolist(), [10.0, 2.0, 30.0, 5.0])
        result = coalesce(col("other"), 0).evaluate(self.frame)
        self.assertEqual(result.tolist(), [1.0, 2.0, 0.0, 7.0])

    def test_greatest_and_least_skip_null(self):
        self.assertEqual(greatest(col("value"), col("other")).evaluate(self.frame).tolist(), [10.0, 2.0, 30.0, 7.0])
        self.assertEqual(least(col("value"), col("other")).evaluate(self.frame).tolist(), [1.0, 2.0, 30.0, 5.0])

    def test_udf(self):
        expr = udf(np.sqrt, col("id") * col("id"), name="root")
        self.assertEqual(expr.name, "root")
        self.assertEqual(expr.evaluate(self.frame).tolist(), [1.0, 2.0, 3.0, 4.0])

    def test_alias_keeps_logic(self):
        expr = (col("id") + 1).alias("next")
        self.assertEqual(expr.name, "next")
        self.assertEqual(expr.evaluate(self.frame).tolist(), [2, 3, 4, 5])

    def test_empty_frame(self):
        empty = self.frame.iloc[0:0]
        self.assertEqual(len((col("value") * 2 + lit(1)).evaluate(empty)), 0)
        self.assertEqual(len(when(col("id") > 1, lit(1)).evaluate(empty)), 0)


class TestAggregations(unittest.TestCase):

    def setUp(self):
        self.frame = pd.DataFrame({
            "id": [1, 1, 2, 3, 3, 3],
            "m": [1.0, 2.0, 5.0, 4.0, np.nan, 6.0],
        })

    def _as_dict(self, result, name="agg"):
        return dict(zip(result["id"], result[name]))

    def test_sum_max_min(self):
        self.assertEqual(self._as_dict(sum_(col("m")).aggregate(self.frame, "id", "agg")), {1: 3.0, 2: 5.0, 3: 10.0})
        self.assertEqual(self._as_dict(max_(col("m")).aggregate(self.frame, "id", "agg")), {1: 2.0, 2: 5.0, 3: 6.0})
        self.assertEqual(self._as_dict(min_(col("m")).aggregate(self.frame, "id", "agg")), {1: 1.0, 2: 5.0, 3: 4.0})

    def test_count_and_first_skip_null(self):
        self.assertEqual(self._as_dict(count(col("m")).aggregate(self.frame, "id", "agg")), {1: 2, 2: 1, 3: 2})
        self.assertEqual(self._as_dict(first(col("m")).aggregate(self.frame, "id", "agg")), {1: 1.0, 2: 5.0, 3: 4.0})

    def test_collect_list(self):
        result = self._as_dict(collect_list(col("m")).aggregate(self.frame.dropna(), "id", "agg"))
        self.assertEqual(result[1], [1.0, 2.0])
        self.assertEqual(result[3], [4.0, 6.0])

    def test_agg_udf(self):
        spread = agg_udf(lambda s: s.max() - s.min(), col("m"), name="spread")
        self.assertEqual(spread.name, "spread")
        self.assertEqual(self._as_dict(spread.aggregate(self.frame, "id", "agg")), {1: 1.0, 2: 0.0, 3: 2.0})

    def test_aggregate_expression_input(self):
        result = sum_(col("m") * 10).aggregate(self.frame, "id", "total")
        self.assertEqual(list(result.columns), ["id", "total"])
        self.assertEqual(self._as_dict(result, "total")[1], 30.0)

    def test_empty_input(self):
        result = sum_(col("m")).aggregate(self.frame.iloc[0:0], "id", "agg")
        self.assertEqual(len(result), 0)
        self.assertEqual(list(result.columns), ["id", "agg"])


if __name__ == "__main__":
    unittest.main()
