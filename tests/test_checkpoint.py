import unittest
import sys
import os
import shutil
import tempfile
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from DagFrame.checkpoint import CheckpointPolicy, CheckpointStore
from DagFrame.expressions import col
from DagFrame.table import Table


class TestCheckpointPolicy(unittest.TestCase):

    def test_every_kth_round(self):
        policy = CheckpointPolicy(2)
        self.assertTrue(policy.enabled)
        self.assertEqual([n for n in range(1, 7) if policy.should_checkpoint(n)], [2, 4, 6])

    def test_interval_one_checkpoints_every_round(self):
        policy = CheckpointPolicy(1)
        self.assertTrue(all(policy.should_checkpoint(n) for n in range(1, 5)))

    def test_zero_disables(self):
        policy = CheckpointPolicy(0)
        self.assertFalse(policy.enabled)
        self.assertFalse(any(policy.should_checkpoint(n) for n in range(1, 10)))


class TestCheckpointStore(unittest.TestCase):

    def setUp(self):
        self.table = (Table.from_frame(pd.DataFrame({"id": [1, 2, 3], "value": [1.0, 2.0, 3.0]}))
                      .filter(col("value") > 1.0)
                      .with_columns({"double": col("value") * 2}))

    def test_checkpoint_truncates_lineage(self):
        store = CheckpointStore()
        try:
            self.assertGreater(self.table.lineage_depth, 0)
            stored = store.checkpoint(self.table, 2)
            self.assertEqual(stored.lineage_depth, 0)
            pd.testing.assert_frame_equal(stored.collect(), self.table.collect().reset_index(drop=True))
        finally:
            store.close()

    def test_only_latest_checkpoint_is_kept(self):
        store = CheckpointStore()
        try:
            store.checkpoint(self.table, 2)
            store.checkpoint(self.table, 4)
            self.assertEqual(store.list_checkpoints(), [4])
            with self.assertRaises(KeyError):
                store.load(2)
        finally:
            store.close()

    def test_load_missing_raises(self):
        store = CheckpointStore()
        try:
            with self.assertRaises(KeyError):
                store.load(1)
        finally:
            store.close()

    def test_unused_store_creates_nothing(self):
        store = CheckpointStore()
        self.assertEqual(store.list_checkpoints(), [])
        store.close()

    def test_close_removes_owned_directory(self):
        store = CheckpointStore()
        store.checkpoint(self.table, 1)
        directory = store.directory
        self.assertTrue(os.path.exists(directory))
        store.close()
        self.assertFalse(os.path.exists(directory))

    def test_close_clears_user_directory(self):
        directory = tempfile.mkdtemp()
        try:
            store = CheckpointStore(directory)
            store.checkpoint(self.table, 3)
            self.assertEqual(store.list_checkpoints(), [3])
            store.close()
            self.assertTrue(os.path.isdir(directory))
            self.assertEqual(CheckpointStore(directory).list_checkpoints(), [])
        finally:
            shutil.rmtree(directory, ignore_errors=True)


if __name__ == "__main__":
    unittest.main()
