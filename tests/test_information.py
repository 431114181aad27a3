import math
import unittest
import warnings
import numpy as np
import pandas as pd
from analysis.information import MutualInformationAnalyzer, entropy_bits, interpret
from analysis.association import AprioriMiner, bin_numeric_value, encode_item, build_transactions
from analysis.errors import InsufficientData, ValidationError


class TestMutualInformation(unittest.TestCase):

    def setUp(self):
        np.random.seed(42)
        n = 500
        x = np.random.uniform(0, 1, n)
        self.df = pd.DataFrame({
            'x': x,
            'x_copy': x.copy(),
            'y': np.random.uniform(0, 1, n),
            'x_noisy': x + np.random.normal(0, 0.05, n),
        })
        self.analyzer = MutualInformationAnalyzer()

    def test_entropy(self):
        self.assertAlmostEqual(entropy_bits(np.array([0, 1, 0, 1])), 1.0)
        self.assertAlmostEqual(entropy_bits(np.array([3, 3, 3])), 0.0)
        self.assertAlmostEqual(entropy_bits(np.array([0, 1, 2, 3])), 2.0)

    def test_mi_with_itself_equals_entropy(self):
        """MI(X, X) = H(X) and the normalized MI is 1."""
        pair = self.analyzer.compute_pair(self.df, 'x', 'x_copy')

        self.assertAlmostEqual(pair.mutual_information, pair.entropy1, places=10)
        self.assertAlmostEqual(pair.normalized_mi, 1.0, places=10)
        self.assertAlmostEqual(pair.conditional_entropy12, 0.0, places=10)
        self.assertEqual(pair.interpretation, 'Strong')

    def test_mi_symmetric(self):
        forward = self.analyzer.compute_pair(self.df, 'x', 'x_noisy')
        backward = self.analyzer.compute_pair(self.df, 'x_noisy', 'x')

        self.assertAlmostEqual(forward.mutual_information, backward.mutual_information, places=12)
        self.assertAlmostEqual(forward.joint_entropy, backward.joint_entropy, places=12)
        self.assertAlmostEqual(forward.conditional_entropy12, backward.conditional_entropy21, places=12)

    def test_independent_columns(self):
        pair = self.analyzer.compute_pair(self.df, 'x', 'y')

        self.assertGreaterEqual(pair.mutual_information, 0.0)
        self.assertEqual(pair.interpretation, 'Independent')

    def test_analyze_ranks_pairs(self):
        result = self.analyzer.analyze(self.df, ['x', 'y', 'x_noisy'])
        mi = [p.mutual_information for p in result.pairs]

        self.assertEqual(len(result.pairs), 3)
        self.assertEqual(mi, sorted(mi, reverse=True))
        self.assertEqual({result.pairs[0].column1, result.pairs[0].column2}, {'x', 'x_noisy'})
        self.assertEqual(result.summary.total_pairs, 3)
        self.assertAlmostEqual(result.summary.max_mi, mi[0])
        self.assertIn(result.pairs[0], result.summary.strongly_related_pairs)
        self.assertEqual(result.samples_analyzed, 500)

    def test_categorical_columns(self):
        df = pd.DataFrame({
            'color': ['red', 'blue', 'red', 'blue', 'green', 'green'] * 5,
            'size': ['S', 'L', 'S', 'L', 'M', 'M'] * 5,
        })
        pair = self.analyzer.compute_pair(df, 'color', 'size')

        self.assertAlmostEqual(pair.mutual_information, math.log2(3), places=10)
        self.assertAlmostEqual(pair.normalized_mi, 1.0, places=10)

    def test_normalizations(self):
        for normalization in ('arithmetic', 'geometric', 'max'):
            analyzer = MutualInformationAnalyzer(normalization=normalization)
            pair = analyzer.compute_pair(self.df, 'x', 'x_noisy')
            self.assertGreater(pair.normalized_mi, 0.0)
            self.assertLessEqual(pair.normalized_mi, 1.0 + 1e-12)

    def test_constant_column(self):
        df = pd.DataFrame({'a': [1.0] * 10, 'b': np.arange(10.0)})
        pair = self.analyzer.compute_pair(df, 'a', 'b')

        self.assertAlmostEqual(pair.entropy1, 0.0)
        self.assertAlmostEqual(pair.mutual_information, 0.0)
        self.assertAlmostEqual(pair.normalized_mi, 0.0)

    def test_pairs_with_too_few_rows(self):
        df = pd.DataFrame({'a': [1.0, 2.0, np.nan, np.nan], 'b': [np.nan, np.nan, 1.0, 2.0]})
        with warnings.catch_warnings(record=True):
            warnings.simplefilter('always')
            with self.assertRaises(InsufficientData):
                self.analyzer.analyze(df, ['a', 'b'])

    def test_invalid_parameters(self):
        with self.assertRaises(ValidationError):
            MutualInformationAnalyzer(bin_count=1)
        with self.assertRaises(ValidationError):
            MutualInformationAnalyzer(normalization='harmonic')
        with self.assertRaises(ValidationError):
            MutualInformationAnalyzer(config={'analysis': {'mutual_information': {'strategy': 'kmeans'}}})

    def test_interpretation_bands(self):
        self.assertEqual(interpret(0.8), 'Strong')
        self.assertEqual(interpret(0.5), 'Moderate')
        self.assertEqual(interpret(0.2), 'Weak')
        self.assertEqual(interpret(0.1), 'Independent')


class TestAssociationRules(unittest.TestCase):

    def setUp(self):
        self.df = pd.DataFrame({
            'weather': ['sunny'] * 6 + ['rainy'] * 4,
            'activity': ['beach'] * 5 + ['home'] * 5,
        })
        self.miner = AprioriMiner(min_support=0.3, min_confidence=0.6)

    def test_item_encoding(self):
        self.assertEqual(bin_numeric_value(-1), 'negative')
        self.assertEqual(bin_numeric_value(0), 'zero')
        self.assertEqual(bin_numeric_value(10), 'low')
        self.assertEqual(bin_numeric_value(100), 'medium')
        self.assertEqual(bin_numeric_value(1000), 'high')
        self.assertEqual(bin_numeric_value(1001), 'very_high')

        self.assertEqual(encode_item('flag', True), 'flag=true')
        self.assertIsNone(encode_item('flag', False))
        self.assertIsNone(encode_item('x', float('nan')))
        self.assertIsNone(encode_item('x', None))
        self.assertIsNone(encode_item('x', ''))
        self.assertEqual(encode_item('x', 50), 'x=medium')
        self.assertEqual(encode_item('city', 'NYC'), 'city=NYC')

    def test_empty_transactions_dropped(self):
        df = pd.DataFrame({'a': [None, 'x'], 'b': [False, None]})
        self.assertEqual(build_transactions(df, ['a', 'b']), [frozenset(['a=x'])])

    def test_rules(self):
        result = self.miner.analyze(self.df)

        self.assertEqual(result.total_transactions, 10)
        self.assertEqual(result.frequent_itemsets, 6)
        self.assertEqual(len(result.rules), 4)

        first = result.rules[0]
        self.assertEqual(first.antecedent, ('activity=beach',))
        self.assertEqual(first.consequent, ('weather=sunny',))
        self.assertAlmostEqual(first.support, 0.5)
        self.assertAlmostEqual(first.confidence, 1.0)
        self.assertAlmostEqual(first.lift, 1.0 / 0.6)
        self.assertTrue(math.isinf(first.conviction))

        sunny_beach = [r for r in result.rules if r.antecedent == ('weather=sunny',)][0]
        self.assertAlmostEqual(sunny_beach.confidence, 0.5 / 0.6)
        self.assertAlmostEqual(sunny_beach.conviction, 3.0)

    def test_rule_metric_identities(self):
        """confidence = support / antecedent support; lift > 1 implies confidence > consequent support."""
        transactions = build_transactions(self.df, ['weather', 'activity'])
        frequent = self.miner.frequent_itemsets(transactions)

        for rule in self.miner.generate_rules(frequent):
            antecedent_support = frequent[frozenset(rule.antecedent)]
            consequent_support = frequent[frozenset(rule.consequent)]
            self.assertAlmostEqual(rule.confidence, rule.support / antecedent_support)
            self.assertGreaterEqual(rule.confidence, self.miner.min_confidence)
            if rule.lift > 1:
                self.assertGreater(rule.confidence, consequent_support)

    def test_rules_sorted_by_confidence(self):
        rules = self.miner.analyze(self.df).rules
        keys = [(r.confidence, r.support) for r in rules]
        self.assertEqual(keys, sorted(keys, reverse=True))

    def test_frequent_itemsets_have_frequent_subsets(self):
        df = pd.DataFrame({
            'a': ['x', 'x', 'x', 'y', 'y', 'x', 'x', 'y'],
            'b': ['p', 'p', 'q', 'q', 'p', 'p', 'q', 'q'],
            'c': [True, True, False, True, True, True, False, True],
        })
        frequent = AprioriMiner(min_support=0.25).frequent_itemsets(build_transactions(df, ['a', 'b', 'c']))

        for itemset in frequent:
            for item in itemset:
                if len(itemset) > 1:
                    self.assertIn(itemset - {item}, frequent)
            self.assertGreaterEqual(frequent[itemset], 0.25)

    def test_no_rule_is_empty_not_error(self):
        result = AprioriMiner(min_support=0.9).analyze(self.df)
        self.assertTrue(result.is_empty)
        self.assertEqual(len(result.to_frame()), 0)

    def test_no_transactions(self):
        df = pd.DataFrame({'a': [None, None], 'b': ['', '']})
        with self.assertRaises(InsufficientData):
            self.miner.analyze(df)

    def test_invalid_parameters(self):
        with self.assertRaises(ValidationError):
            AprioriMiner(min_support=0)
        with self.assertRaises(ValidationError):
            AprioriMiner(min_confidence=1.5)
        with self.assertRaises(ValidationError):
            AprioriMiner(max_itemset_size=1)


if __name__ == '__main__':
    unittest.main()
