import unittest
import numpy as np
import pandas as pd
from analysis.profiling import ColumnProfiler, MissingDataDetector, infer_data_type


class TestColumnProfiler(unittest.TestCase):

    def setUp(self):
        self.profiler = ColumnProfiler()

    def test_infer_data_type(self):
        self.assertEqual(infer_data_type(pd.Series([1, 2, 3])), 'INTEGER')
        self.assertEqual(infer_data_type(pd.Series(['1.5', '2.25', '-0.5'])), 'FLOAT')
        self.assertEqual(infer_data_type(pd.Series(['1', '2.5', '3', '4.5', '5'])), 'NUMERIC')
        self.assertEqual(infer_data_type(pd.Series(['2024-01-01', '2024-02-01T10:00'])), 'DATE')
        self.assertEqual(infer_data_type(pd.Series([True, False, True])), 'BOOLEAN')
        self.assertEqual(infer_data_type(pd.Series(['true', 'FALSE'])), 'BOOLEAN')
        self.assertEqual(infer_data_type(pd.Series(['apple', 'pear', '3'])), 'TEXT')
        self.assertEqual(infer_data_type(pd.Series([None, ''])), 'TEXT')

    def test_infer_ignores_empty_values(self):
        """The 80% rule applies to non-empty values only."""
        self.assertEqual(infer_data_type(pd.Series(['1', '', None, '2', '3', '4'])), 'INTEGER')

    def test_infer_uses_first_hundred_rows(self):
        values = pd.Series(['1'] * 100 + ['text'] * 400)
        self.assertEqual(infer_data_type(values), 'INTEGER')

    def test_profile_column(self):
        profile = self.profiler.profile_column(pd.Series(['a', 'b', 'a', None, '']), 'letters')

        self.assertEqual(profile.total_rows, 5)
        self.assertEqual(profile.null_count, 1)
        self.assertAlmostEqual(profile.null_percentage, 20.0)
        self.assertEqual(profile.empty_string_count, 1)
        self.assertEqual(profile.unique_values, 2)
        self.assertEqual(profile.top_values[0], ('a', 2, 40.0))
        self.assertEqual(profile.sample_values, ('a', 'b'))
        self.assertEqual(profile.data_type, 'TEXT')
        self.assertIsNone(profile.numeric_stats)

    def test_numeric_stats(self):
        profile = self.profiler.profile_column(pd.Series([1.0, 2.0, 3.0, 4.0, None]), 'x')
        stats = profile.numeric_stats

        self.assertEqual(stats['min'], 1.0)
        self.assertEqual(stats['max'], 4.0)
        self.assertAlmostEqual(stats['mean'], 2.5)
        self.assertEqual(stats['median'], 3.0)
        self.assertAlmostEqual(stats['std'], np.sqrt(1.25))

    def test_numeric_stats_need_half_numeric(self):
        profile = self.profiler.profile_column(pd.Series(['1', 'a', 'b', 'c']), 'x')
        self.assertIsNone(profile.numeric_stats)

    def test_profile_frame(self):
        df = pd.DataFrame({'a': [1, 2, 3], 'b': ['x', 'y', None]})
        result = self.profiler.profile(df)

        self.assertEqual(result.kind, 'column_profile')
        self.assertEqual([p.column for p in result.profiles], ['a', 'b'])
        self.assertEqual(list(result.to_frame()['null_count']), [0, 1])


class TestMissingDataDetector(unittest.TestCase):

    def setUp(self):
        self.df = pd.DataFrame({'v': [1, None, None, 3, 0, 5, '']})

    def test_runs_with_default_flags(self):
        """Nulls, zeros and blank strings all start runs by default."""
        result = MissingDataDetector().detect(self.df)
        events = [(e.row_index, e.event_type) for e in result.events]

        self.assertEqual(events, [
            (1, 'missing_start'), (3, 'missing_end'),
            (4, 'missing_start'), (5, 'missing_end'),
            (6, 'missing_start'),
        ])
        self.assertEqual(result.events[0].previous_value, 1)
        self.assertEqual(result.events[1].missing_length, 2)
        self.assertEqual(result.events[2].value, 0)

        stats = result.column_stats['v']
        self.assertEqual(stats.total_missing_events, 3)
        self.assertAlmostEqual(stats.average_missing_length, 4 / 3)
        self.assertEqual(stats.max_missing_length, 2)
        self.assertAlmostEqual(stats.missing_percentage, 4 / 7 * 100)
        self.assertEqual(result.longest_missing_streak, 2)
        self.assertEqual(result.affected_columns, ['v'])

    def test_zero_not_missing(self):
        result = MissingDataDetector(treat_zero_as_missing=False).detect(self.df)
        stats = result.column_stats['v']

        self.assertEqual(stats.total_missing_events, 2)
        self.assertNotIn(4, [e.row_index for e in result.events])

    def test_flags_from_config(self):
        config = {'analysis': {'missing_data': {'treat_zero_as_missing': False, 'treat_empty_as_missing': False}}}
        result = MissingDataDetector(config=config).detect(self.df)
        self.assertEqual(result.column_stats['v'].total_missing_events, 1)

    def test_complete_column(self):
        result = MissingDataDetector().detect(pd.DataFrame({'a': [1, 2, 3]}))

        self.assertEqual(result.events, ())
        self.assertEqual(result.column_stats['a'].average_missing_length, 0.0)
        self.assertEqual(result.affected_columns, [])

    def test_events_sorted_across_columns(self):
        df = pd.DataFrame({'a': [1, 2, None, 4], 'b': [None, 2, 3, 4]})
        result = MissingDataDetector().detect(df)
        rows = [e.row_index for e in result.events]
        self.assertEqual(rows, sorted(rows))
        self.assertEqual(len(result.to_frame()), 4)


if __name__ == '__main__':
    unittest.main()
