import tempfile
import unittest
import warnings
from pathlib import Path
import numpy as np
import pandas as pd
from data.table import MemoryTable
from data.filters import FilterPredicate
from analysis.errors import (
    ValidationError, InvalidColumn, AnalysisFailed, SingularMatrix, InsufficientData
)
from pipeline.config import AnalysisConfig
from pipeline.engine import AnalysisEngine, COLUMN_BOUNDS, ANALYSIS_TYPES
from pipeline.main import main


class TestAnalysisEngine(unittest.TestCase):

    def setUp(self):
        np.random.seed(42)
        n = 20
        x = np.arange(n, dtype=float)
        a = np.random.normal(0, 1, n)
        b = np.random.normal(0, 1, n)
        self.table = MemoryTable(pd.DataFrame({
            'x': x,
            'y': 2 * x + 1,
            'a': a,
            'b': b,
            'c': a + b,
            'd': a - b,
            'a_copy': a,
            'group': ['g1', 'g2'] * 10,
            'name': [f"item{i}" for i in range(n)],
            'sparse': [1.0, 2.0, 3.0] + [np.nan] * 17,
            'day': pd.date_range('2024-01-01', periods=n, freq='12h'),
        }), name='sample')
        self.engine = AnalysisEngine()

    def test_analysis_types(self):
        self.assertEqual(set(ANALYSIS_TYPES), set(COLUMN_BOUNDS))
        self.assertEqual(len(ANALYSIS_TYPES), 12)

    def test_unknown_type(self):
        with self.assertRaises(ValidationError):
            self.engine.run('regression', self.table, ['x', 'y'])

    def test_column_bounds(self):
        with self.assertRaises(ValidationError):
            self.engine.run('correlation', self.table, ['x'])
        with self.assertRaises(ValidationError):
            self.engine.run('changepoint', self.table, ['x', 'y'])
        with self.assertRaises(ValidationError):
            self.engine.run('histogram', self.table, [])
        with self.assertRaises(ValidationError):
            self.engine.run('basic', self.table, ['x'] * 11)
        with self.assertRaises(ValidationError):
            self.engine.run('correlation', self.table, ['x', 'x'])

    def test_unknown_column(self):
        with self.assertRaises(InvalidColumn):
            self.engine.run('basic', self.table, ['missing'])

    def test_non_numeric_column(self):
        with self.assertRaises(InvalidColumn) as ctx:
            self.engine.run('correlation', self.table, ['x', 'name'])
        self.assertEqual(ctx.exception.columns, ['name'])

    def test_basic(self):
        result = self.engine.run('basic', self.table, ['x', 'y'])

        self.assertEqual(result.kind, 'basic')
        self.assertEqual(result.get('x').count, 20)
        self.assertAlmostEqual(result.get('y').mean, 20.0)

    def test_basic_with_filter(self):
        filters = [FilterPredicate('group', 'equals', 'g1')]
        result = self.engine.run('basic', self.table, ['x'], filters=filters)

        self.assertEqual(result.get('x').count, 10)
        self.assertAlmostEqual(result.get('x').mean, 9.0)

    def test_zero_as_missing(self):
        result = self.engine.run('basic', self.table, ['x'], parameters={'treat_zero_as_missing': True})
        self.assertEqual(result.get('x').count, 19)

    def test_correlation_linear(self):
        """y = 2x + 1 over 20 rows: correlation 1."""
        result = self.engine.run('correlation', self.table, ['x', 'y'])
        self.assertAlmostEqual(result.get('x', 'y'), 1.0, places=10)

    def test_correlation_pairwise_rows(self):
        with warnings.catch_warnings(record=True):
            warnings.simplefilter('always')
            result = self.engine.run('correlation', self.table, ['x', 'y', 'sparse'])

        counts = {(p.column1, p.column2): p.n for p in result.pairs}
        self.assertEqual(counts[('x', 'y')], 20)
        self.assertEqual(counts[('x', 'sparse')], 3)

    def test_factor_linear(self):
        """y = 2x + 1: the first component explains all variance."""
        result = self.engine.run('factor', self.table, ['x', 'y'])
        self.assertAlmostEqual(result.factors[0].variance, 1.0, places=6)

    def test_factor_parameters(self):
        result = self.engine.run('factor', self.table, ['a', 'b', 'x'], parameters={'n_factors': 2})
        self.assertEqual(len(result.factors), 2)

    def test_histogram_and_bins(self):
        default = self.engine.run('histogram', self.table, ['x'])
        custom = self.engine.run('histogram', self.table, ['x'], parameters={'bins': 4})

        self.assertEqual(len(default.bins), 10)
        self.assertEqual(len(custom.bins), 4)
        self.assertEqual(sum(b.count for b in custom.bins), 20)

    def test_timeseries(self):
        by_row = self.engine.run('timeseries', self.table, ['y'])
        by_day = self.engine.run('timeseries', self.table, ['y'], parameters={'x_axis': 'day'})

        self.assertEqual(len(by_row.points), 20)
        self.assertEqual(len(by_day.points), 10)
        self.assertEqual(by_day.time_column, 'day')
        self.assertAlmostEqual(by_day.points[0].value, 2.0)
        self.assertEqual(by_day.points[0].count, 2)

    def test_timeseries_numeric_x_axis(self):
        table = MemoryTable(pd.DataFrame({'t': np.arange(1, 21), 'v': np.arange(20.0)}))
        result = self.engine.run('timeseries', table, ['v'], parameters={'x_axis': 't'})

        self.assertEqual(len(result.points), 20)
        self.assertEqual(result.points[0].time, '1')
        self.assertEqual(result.points[-1].time, '20')
        self.assertAlmostEqual(result.points[-1].value, 19.0)
        self.assertIsNone(result.interval)

    def test_numeric_string_parameters(self):
        result = self.engine.run('histogram', self.table, ['x'], parameters={'bins': '5'})
        self.assertEqual(len(result.bins), 5)

    def test_malformed_parameters(self):
        outcomes = [
            self.engine.try_run('histogram', self.table, ['x'], parameters={'bins': 'abc'}),
            self.engine.try_run('histogram', self.table, ['x'], parameters={'bins': 2.5}),
            self.engine.try_run('histogram', self.table, ['x'], parameters={'bins': True}),
            self.engine.try_run('changepoint', self.table, ['y'], parameters={'short_window': 'abc'}),
            self.engine.try_run('canonical', self.table, ['a', 'b'], parameters={'right_columns': 5}),
        ]

        for outcome in outcomes:
            self.assertFalse(outcome.ok)
            self.assertIsInstance(outcome.error, ValidationError)
        self.assertIn('bins', str(outcomes[0].error))

    def test_text(self):
        table = MemoryTable(pd.DataFrame({
            'comment': ['Hello world. This is a test!', 'Contact me at a@b.com', None],
        }))
        result = self.engine.run('text', table, ['comment'], parameters={'word_limit': 2})

        self.assertEqual(result.kind, 'text')
        self.assertEqual(result.statistics.total_records, 2)
        self.assertEqual(len(result.word_frequencies), 2)

        with self.assertRaises(ValidationError):
            self.engine.run('text', self.table, ['name', 'group'])
        with self.assertRaises(InvalidColumn):
            self.engine.run('text', MemoryTable(pd.DataFrame({'c': [None, None]})), ['c'])

    def test_changepoint(self):
        table = MemoryTable(pd.DataFrame({
            'v': [1, 1, 1, 1, 10, 10, 10, 10],
            't': [8, 7, 6, 5, 4, 3, 2, 1],
        }))
        result = self.engine.run('changepoint', table, ['v'])
        self.assertEqual(result.indices, [4])
        self.assertGreater(result.points[0].confidence, 0.8)

        # Ordered by t the series falls from 10 to 1
        ordered = self.engine.run('changepoint', table, ['v'], parameters={'x_axis': 't'})
        self.assertEqual(ordered.indices, [4])
        self.assertEqual(ordered.points[0].value, 1.0)

        cusum = self.engine.run('changepoint', table, ['v'], parameters={'algorithm': 'cusum', 'h': 1000})
        self.assertEqual(cusum.algorithm, 'cusum')
        self.assertTrue(cusum.is_empty)

    def test_canonical(self):
        """c = a + b and d = a - b: first canonical correlation 1."""
        result = self.engine.run('canonical', self.table, ['a', 'b'], parameters={'right_columns': ['c', 'd']})

        self.assertAlmostEqual(result.canonical_correlations[0], 1.0, places=6)
        self.assertAlmostEqual(sum(result.variance_explained), 100.0, places=6)

    def test_canonical_validation(self):
        with self.assertRaises(ValidationError):
            self.engine.run('canonical', self.table, ['a', 'b'])
        with self.assertRaises(ValidationError):
            self.engine.run('canonical', self.table, ['a', 'b'], parameters={'right_columns': ['c']})
        with self.assertRaises(ValidationError):
            self.engine.run('canonical', self.table, ['a'], parameters={'right_columns': ['c', 'd']})
        with self.assertRaises(ValidationError):
            self.engine.run('canonical', self.table, ['a', 'b'], parameters={'right_columns': ['b', 'c']})

    def test_canonical_needs_ten_values_per_column(self):
        with self.assertRaises(InvalidColumn) as ctx:
            self.engine.run('canonical', self.table, ['a', 'sparse'], parameters={'right_columns': ['c', 'd']})
        self.assertEqual(ctx.exception.columns, ['sparse'])

    def test_canonical_singular_wrapped(self):
        with self.assertRaises(AnalysisFailed) as ctx:
            self.engine.run('canonical', self.table, ['a', 'a_copy'], parameters={'right_columns': ['c', 'd']})

        self.assertEqual(ctx.exception.module, 'canonical')
        self.assertEqual(ctx.exception.columns, ['a', 'a_copy'])
        self.assertIsInstance(ctx.exception.__cause__, SingularMatrix)

    def test_mutual_information(self):
        result = self.engine.run('mutual_information', self.table, ['x', 'y', 'group'])

        self.assertEqual(result.summary.total_pairs, 3)
        top = result.pairs[0]
        self.assertEqual({top.column1, top.column2}, {'x', 'y'})
        self.assertAlmostEqual(top.normalized_mi, 1.0, places=10)

    def test_association_rules(self):
        table = MemoryTable(pd.DataFrame({
            'weather': ['sunny'] * 6 + ['rainy'] * 4,
            'activity': ['beach'] * 5 + ['home'] * 5,
        }))
        result = self.engine.run(
            'association_rules', table, ['weather', 'activity'],
            parameters={'min_support': 0.3, 'min_confidence': 0.6}
        )
        self.assertEqual(len(result.rules), 4)
        self.assertEqual(result.min_support, 0.3)

    def test_column_profile(self):
        result = self.engine.run('column_profile', self.table, ['x', 'name', 'sparse'])
        profiles = {p.column: p for p in result.profiles}

        self.assertEqual(profiles['name'].data_type, 'TEXT')
        self.assertEqual(profiles['sparse'].null_count, 17)
        self.assertEqual(profiles['x'].total_rows, 20)

    def test_missing_data(self):
        table = MemoryTable(pd.DataFrame({'v': [1, 0, 2, None, 3]}))

        default = self.engine.run('missing_data', table, ['v'])
        no_zero = self.engine.run('missing_data', table, ['v'], parameters={'include_zero': False})

        self.assertEqual(default.column_stats['v'].total_missing_events, 2)
        self.assertEqual(no_zero.column_stats['v'].total_missing_events, 1)

    def test_try_run(self):
        ok = self.engine.try_run('basic', self.table, ['x'])
        failed = self.engine.try_run('correlation', self.table, ['x'])

        self.assertTrue(ok.ok)
        self.assertEqual(ok.result.kind, 'basic')
        self.assertFalse(failed.ok)
        self.assertIsNone(failed.result)
        self.assertIsInstance(failed.error, ValidationError)

    def test_try_run_insufficient_data(self):
        table = MemoryTable(pd.DataFrame({'a': [None, None], 'b': ['', '']}))
        outcome = self.engine.try_run('association_rules', table, ['a', 'b'])
        self.assertIsInstance(outcome.error, InsufficientData)

    def test_repeated_runs_identical(self):
        first = self.engine.run('factor', self.table, ['a', 'b', 'x'])
        second = self.engine.run('factor', self.table, ['a', 'b', 'x'])
        pd.testing.assert_frame_equal(first.to_frame(), second.to_frame())
        pd.testing.assert_frame_equal(first.loadings_frame(), second.loadings_frame())


class TestAnalysisConfig(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_defaults_valid(self):
        config = AnalysisConfig()
        config.validate()

        sections = config.analyzer_config()['analysis']
        self.assertEqual(sections['statistical']['histogram_bins'], 10)
        self.assertEqual(sections['changepoint']['ewma'], {'lam': 0.2, 'k': 3.0})
        self.assertTrue(sections['missing_data']['treat_zero_as_missing'])

    def test_invalid_values(self):
        with self.assertRaises(ValueError):
            AnalysisConfig(histogram_bins=0).validate()
        with self.assertRaises(ValueError):
            AnalysisConfig.from_dict({'mi_normalization': 'harmonic'})
        with self.assertRaises(ValueError):
            AnalysisConfig.from_dict({'analyses': [{'type': 'basic'}]})

    def test_unknown_keys_warn(self):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            config = AnalysisConfig.from_dict({'histogram_bins': 5, 'colour': 'blue'})

        self.assertEqual(config.histogram_bins, 5)
        self.assertTrue(any('colour' in str(w.message) for w in caught))

    def test_yaml_round_trip(self):
        path = self.dir / 'config.yaml'
        original = AnalysisConfig(
            histogram_bins=4,
            changepoint_algorithm='ewma',
            analyses=[{'type': 'basic', 'columns': ['x']}]
        )
        original.to_yaml(str(path))

        loaded = AnalysisConfig.from_yaml(str(path))
        self.assertEqual(loaded, original)

    def test_missing_yaml(self):
        with self.assertRaises(FileNotFoundError):
            AnalysisConfig.from_yaml(str(self.dir / 'nope.yaml'))

    def test_config_drives_engine(self):
        table = MemoryTable(pd.DataFrame({'x': np.arange(20.0)}))
        engine = AnalysisEngine(AnalysisConfig(histogram_bins=4, std_ddof=1))

        self.assertEqual(len(engine.run('histogram', table, ['x']).bins), 4)
        self.assertAlmostEqual(
            engine.run('basic', table, ['x']).get('x').std,
            float(np.std(np.arange(20.0), ddof=1))
        )


class TestCommandLine(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        x = np.arange(20, dtype=float)
        self.csv = self.dir / 'data.csv'
        pd.DataFrame({'x': x, 'y': 2 * x + 1, 'g': ['a', 'b'] * 10}).to_csv(self.csv, index=False)

    def tearDown(self):
        self.tmp.cleanup()

    def test_single_analysis_with_export(self):
        out = self.dir / 'out'
        code = main([str(self.csv), '--analysis', 'correlation', '--columns', 'x', 'y',
                     '--export', str(out), '--format', 'csv'])

        self.assertEqual(code, 0)
        exported = pd.read_csv(out / '1_correlation.csv')
        self.assertAlmostEqual(exported.loc[0, 'correlation'], 1.0)

    def test_batch_from_config(self):
        config = AnalysisConfig(
            output_dir=str(self.dir / 'results'),
            export_format='csv',
            analyses=[
                {'name': 'stats', 'type': 'basic', 'columns': ['x', 'y']},
                {'type': 'basic', 'columns': ['x'],
                 'filters': [{'column': 'g', 'operator': 'equals', 'value': 'a'}]},
                {'type': 'correlation', 'columns': ['x']},
            ]
        )
        config_path = self.dir / 'config.yaml'
        config.to_yaml(str(config_path))

        code = main([str(self.csv), '--config', str(config_path)])

        self.assertEqual(code, 1)
        out = self.dir / 'results' / 'data_analysis'
        self.assertTrue((out / 'stats.csv').exists())
        filtered = pd.read_csv(out / '2_basic.csv')
        self.assertEqual(filtered.loc[0, 'count'], 10)
        self.assertFalse((out / '3_correlation.csv').exists())

    def test_bad_data_file(self):
        self.assertEqual(main([str(self.dir / 'missing.csv'), '--analysis', 'basic', '--columns', 'x']), 2)


if __name__ == '__main__':
    unittest.main()
