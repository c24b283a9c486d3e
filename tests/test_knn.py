"""
Unit tests for the K-nearest-neighbours classifier.

Tests construction checks, prediction, tie-breaking, the bounded top-K
selection and agreement with scikit-learn.
"""

import pickle
import unittest
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from sklearn.neighbors import KNeighborsClassifier

from knn_classifier.dataset import TrainingSet
from knn_classifier.distance import distances_to
from knn_classifier.errors import DimensionMismatch, InvalidConfiguration, KNNError
from knn_classifier.knn import KNNClassifier, Neighbour
from knn_classifier.labels import Diagnosis, coerce_labels
from knn_classifier.state import default_config, update_config_value


CANCER_FEATURES = [
    [-1.24, 4.7],
    [-0.29, 3.99],
    [-1.08, 2.63],
    [-0.46, 2.72],
    [0.64, 4.3],
]
CANCER_LABELS = ['M', 'M', 'B', 'B', 'M']
NEW_OBSERVATION = [-1.0, 4.2]


class TestConstruction(unittest.TestCase):
    """Test classifier construction and validation."""

    def setUp(self):
        self.training_set = TrainingSet(CANCER_FEATURES, CANCER_LABELS)

    def test_defaults(self):
        """Test default policies."""
        classifier = KNNClassifier(self.training_set, k=3)

        self.assertEqual(classifier.k, 3)
        self.assertEqual(classifier.metric, 'euclidean')
        self.assertEqual(classifier.distance_tie_break, 'insertion')
        self.assertEqual(classifier.vote_tie_break, 'nearest')
        self.assertIs(classifier.training_set, self.training_set)

    def test_k_bounds(self):
        """Test that k must lie in [1, n]."""
        KNNClassifier(self.training_set, k=1)
        KNNClassifier(self.training_set, k=5)

        with self.assertRaises(InvalidConfiguration) as context:
            KNNClassifier(self.training_set, k=0)
        self.assertIn("positive integer", str(context.exception))

        with self.assertRaises(InvalidConfiguration):
            KNNClassifier(self.training_set, k=-3)

        with self.assertRaises(InvalidConfiguration) as context:
            KNNClassifier(self.training_set, k=6)
        self.assertIn("cannot exceed the number of training samples (5)", str(context.exception))

    def test_k_type(self):
        """Test that k must be a real integer."""
        for bad_k in (2.0, 3.5, True, '3', None):
            with self.assertRaises(InvalidConfiguration):
                KNNClassifier(self.training_set, k=bad_k)

        classifier = KNNClassifier(self.training_set, k=np.int64(3))
        self.assertEqual(classifier.k, 3)

    def test_even_k_warns(self):
        """Test that even k logs a warning but is accepted."""
        with self.assertLogs('knn_classifier.knn', level='WARNING') as logs:
            classifier = KNNClassifier(self.training_set, k=4)

        self.assertEqual(classifier.k, 4)
        self.assertTrue(any("even" in message for message in logs.output))

    def test_unknown_policies(self):
        """Test that unknown metric and tie-break names are rejected."""
        with self.assertRaises(InvalidConfiguration):
            KNNClassifier(self.training_set, k=3, metric='cosine')

        with self.assertRaises(InvalidConfiguration):
            KNNClassifier(self.training_set, k=3, distance_tie_break='random')

        with self.assertRaises(InvalidConfiguration):
            KNNClassifier(self.training_set, k=3, vote_tie_break='random')

    def test_requires_training_set(self):
        """Test that raw arrays are not accepted in place of a TrainingSet."""
        with self.assertRaises(InvalidConfiguration):
            KNNClassifier(np.array(CANCER_FEATURES), k=3)

    def test_errors_are_value_errors(self):
        """Test that error kinds can be caught generically."""
        self.assertTrue(issubclass(InvalidConfiguration, KNNError))
        self.assertTrue(issubclass(DimensionMismatch, ValueError))

    def test_from_config(self):
        """Test building a classifier from configuration."""
        config = default_config()
        update_config_value(config, 'classifier.n_neighbors', 3)
        update_config_value(config, 'classifier.vote_tie_break', 'lexical')

        classifier = KNNClassifier.from_config(self.training_set, config)

        self.assertEqual(classifier.k, 3)
        self.assertEqual(classifier.vote_tie_break, 'lexical')
        self.assertEqual(classifier.distance_tie_break, 'insertion')

    def test_from_config_k_too_large(self):
        """Test that configured k is still checked against the training set."""
        config = update_config_value(default_config(), 'classifier.n_neighbors', 7)

        with self.assertRaises(InvalidConfiguration):
            KNNClassifier.from_config(self.training_set, config)


class TestPredict(unittest.TestCase):
    """Test prediction on the Perimeter/Concavity example."""

    def setUp(self):
        self.training_set = TrainingSet(CANCER_FEATURES, CANCER_LABELS)

    def test_five_neighbours_predict_malignant(self):
        """Test that 3 of the 5 nearest are M, so M is predicted."""
        classifier = KNNClassifier(self.training_set, k=5)

        self.assertEqual(classifier.predict(NEW_OBSERVATION), 'M')
        self.assertEqual(classifier.predict_votes(NEW_OBSERVATION), {'B': 2, 'M': 3})

    def test_kneighbors_order_and_distances(self):
        """Test neighbour ranking against hand-computed distances."""
        classifier = KNNClassifier(self.training_set, k=5)
        neighbours = classifier.kneighbors(NEW_OBSERVATION)

        self.assertEqual([n.index for n in neighbours], [0, 1, 2, 3, 4])
        self.assertIsInstance(neighbours[0], Neighbour)
        self.assertAlmostEqual(neighbours[0].distance, np.sqrt(0.24 ** 2 + 0.5 ** 2))
        self.assertAlmostEqual(neighbours[1].distance, np.sqrt(0.71 ** 2 + 0.21 ** 2))
        self.assertAlmostEqual(neighbours[4].distance, np.sqrt(1.64 ** 2 + 0.1 ** 2))
        self.assertEqual([n.label for n in neighbours], ['M', 'M', 'B', 'B', 'M'])

    def test_smaller_k(self):
        """Test k=1 and k=3 on the same query."""
        self.assertEqual(KNNClassifier(self.training_set, k=1).predict(NEW_OBSERVATION), 'M')
        self.assertEqual(KNNClassifier(self.training_set, k=3).predict(NEW_OBSERVATION), 'M')

    def test_even_k_vote_tie(self):
        """Test a 2-2 vote at k=4 under both vote tie-breaks."""
        nearest = KNNClassifier(self.training_set, k=4, vote_tie_break='nearest')
        lexical = KNNClassifier(self.training_set, k=4, vote_tie_break='lexical')

        self.assertEqual(nearest.predict_votes(NEW_OBSERVATION), {'B': 2, 'M': 2})
        self.assertEqual(nearest.predict(NEW_OBSERVATION), 'M')
        self.assertEqual(lexical.predict(NEW_OBSERVATION), 'B')

    def test_dimension_mismatch(self):
        """Test that the query must match the training dimensionality."""
        classifier = KNNClassifier(self.training_set, k=3)

        with self.assertRaises(DimensionMismatch) as context:
            classifier.predict([1.0, 2.0, 3.0])
        self.assertEqual(context.exception.expected, 2)
        self.assertEqual(context.exception.got, 3)

        with self.assertRaises(DimensionMismatch):
            classifier.predict([1.0])

        with self.assertRaises(DimensionMismatch):
            classifier.predict([[1.0, 2.0]])

        with self.assertRaises(DimensionMismatch):
            classifier.kneighbors(5.0)

    def test_dimension_mismatch_pickles(self):
        """Test that the error survives transfer between processes."""
        classifier = KNNClassifier(self.training_set, k=3)

        with self.assertRaises(DimensionMismatch) as context:
            classifier.predict([1.0, 2.0, 3.0])

        restored = pickle.loads(pickle.dumps(context.exception))

        self.assertIsInstance(restored, DimensionMismatch)
        self.assertEqual(restored.expected, 2)
        self.assertEqual(restored.got, 3)
        self.assertEqual(str(restored), str(context.exception))

        custom = pickle.loads(pickle.dumps(DimensionMismatch(2, 4, "queries must be a 2D array")))
        self.assertEqual(str(custom), "queries must be a 2D array")
        self.assertEqual((custom.expected, custom.got), (2, 4))

    def test_large_coordinates(self):
        """Test that huge coordinates still rank neighbours correctly."""
        training_set = TrainingSet([[1e200], [2e200], [0.0]], ['far', 'farther', 'near'])
        classifier = KNNClassifier(training_set, k=1)

        self.assertEqual(classifier.predict([3e200]), 'farther')
        self.assertEqual([n.index for n in KNNClassifier(training_set, k=3).kneighbors([3e200])], [1, 0, 2])

    def test_tiny_differences(self):
        """Test that tiny non-zero differences are not treated as ties."""
        training_set = TrainingSet([[0.0], [1e-200]], ['zero', 'tiny'])
        classifier = KNNClassifier(training_set, k=1)

        self.assertEqual(classifier.predict([1e-200]), 'tiny')
        self.assertEqual(classifier.predict([0.0]), 'zero')

    def test_non_finite_query(self):
        """Test that NaN queries are rejected."""
        classifier = KNNClassifier(self.training_set, k=3)

        with self.assertRaises(InvalidConfiguration):
            classifier.predict([np.nan, 1.0])

    def test_predict_many(self):
        """Test batch prediction."""
        classifier = KNNClassifier(self.training_set, k=1)
        predictions = classifier.predict_many(CANCER_FEATURES)

        self.assertEqual(predictions.shape, (5,))
        self.assertEqual(list(predictions), CANCER_LABELS)

        with self.assertRaises(DimensionMismatch):
            classifier.predict_many(NEW_OBSERVATION)

        with self.assertRaises(DimensionMismatch):
            classifier.predict_many([[1.0, 2.0, 3.0]])

    def test_enum_labels(self):
        """Test prediction with Diagnosis labels."""
        training_set = TrainingSet(CANCER_FEATURES, coerce_labels(CANCER_LABELS, Diagnosis))
        classifier = KNNClassifier(training_set, k=5)

        self.assertIs(classifier.predict(NEW_OBSERVATION), Diagnosis.MALIGNANT)

    def test_training_set_unchanged(self):
        """Test that prediction does not modify the training set."""
        classifier = KNNClassifier(self.training_set, k=3)
        before = self.training_set.features.copy()

        classifier.predict(NEW_OBSERVATION)
        classifier.predict_many(CANCER_FEATURES)

        np.testing.assert_array_equal(self.training_set.features, before)
        self.assertEqual(self.training_set.labels, tuple(CANCER_LABELS))


class TestTieBreaking(unittest.TestCase):
    """Test deterministic tie-breaking rules."""

    def test_distance_tie_insertion_order(self):
        """Test that equidistant observations are ranked by position by default."""
        training_set = TrainingSet([[1.0, 0.0], [-1.0, 0.0], [0.0, 2.0]], ['z', 'a', 'a'])

        classifier = KNNClassifier(training_set, k=1)
        self.assertEqual(classifier.predict([0.0, 0.0]), 'z')
        self.assertEqual([n.index for n in classifier.kneighbors([0.0, 0.0])], [0])

    def test_distance_tie_by_label(self):
        """Test the label tie-break for equidistant observations."""
        training_set = TrainingSet([[1.0, 0.0], [-1.0, 0.0], [0.0, 2.0]], ['z', 'a', 'a'])

        classifier = KNNClassifier(training_set, k=1, distance_tie_break='label')
        self.assertEqual(classifier.predict([0.0, 0.0]), 'a')

    def test_tie_at_k_boundary(self):
        """Test that only k neighbours are kept when the boundary is tied."""
        training_set = TrainingSet(
            [[0.0], [1.0], [-1.0], [1.0], [5.0]],
            ['p', 'q', 'r', 's', 't']
        )
        classifier = KNNClassifier(training_set, k=2)
        neighbours = classifier.kneighbors([0.0])

        self.assertEqual([n.index for n in neighbours], [0, 1])

    def test_three_way_vote_tie(self):
        """Test a 1-1-1 vote among three classes."""
        training_set = TrainingSet([[1.0, 0.0], [2.0, 0.0], [3.0, 0.0]], ['c', 'b', 'a'])

        nearest = KNNClassifier(training_set, k=3)
        lexical = KNNClassifier(training_set, k=3, vote_tie_break='lexical')

        self.assertEqual(nearest.predict([0.0, 0.0]), 'c')
        self.assertEqual(lexical.predict([0.0, 0.0]), 'a')

    def test_nearest_tie_break_ignores_untied_labels(self):
        """Test that the closest neighbour wins only if its label is tied."""
        training_set = TrainingSet(
            [[1.0], [2.0], [3.0], [4.0], [5.0], [6.0]],
            ['x', 'y', 'z', 'y', 'z', 'x']
        )
        # k=5 tallies: x=1, y=2, z=2 -> closest tied neighbour is y at index 1
        classifier = KNNClassifier(training_set, k=5)

        self.assertEqual(classifier.predict([0.0]), 'y')


class TestProperties(unittest.TestCase):
    """Test general properties on random data."""

    def setUp(self):
        rng = np.random.default_rng(7)
        self.features = rng.normal(size=(40, 3))
        self.labels = rng.choice(['a', 'b', 'c'], size=40).tolist()
        self.training_set = TrainingSet(self.features, self.labels)
        self.queries = rng.normal(size=(25, 3))

    def test_prediction_is_known_label(self):
        """Test that every prediction is a training label, for every k."""
        for k in range(1, self.training_set.n_observations + 1):
            classifier = KNNClassifier(self.training_set, k=k)
            for query in self.queries[:5]:
                self.assertIn(classifier.predict(query), self.training_set.classes)

    def test_identical_query_k1(self):
        """Test that a query equal to an observation gets its label at k=1."""
        classifier = KNNClassifier(self.training_set, k=1)

        for features, label in zip(self.features, self.labels):
            self.assertEqual(classifier.predict(features), label)

    def test_k_equals_n_constant_prediction(self):
        """Test that k=n predicts the same label everywhere."""
        training_set = TrainingSet(self.features[:5], ['x', 'y', 'x', 'y', 'x'])
        classifier = KNNClassifier(training_set, k=5)

        predictions = {classifier.predict(query) for query in self.queries}
        self.assertEqual(predictions, {'x'})

    def test_deterministic(self):
        """Test that repeated calls give identical results."""
        classifier = KNNClassifier(self.training_set, k=4)

        first = classifier.predict_many(self.queries)
        for _ in range(3):
            np.testing.assert_array_equal(classifier.predict_many(self.queries), first)

    def test_concurrent_predictions(self):
        """Test that one classifier can serve several threads."""
        classifier = KNNClassifier(self.training_set, k=5)
        expected = [classifier.predict(query) for query in self.queries]

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(classifier.predict, self.queries))

        self.assertEqual(results, expected)

    def test_bounded_selection_matches_full_sort(self):
        """Test that partition-based selection equals a full stable sort, ties included."""
        rng = np.random.default_rng(3)
        features = rng.integers(-3, 4, size=(60, 2)).astype(np.float64)
        labels = rng.choice(['a', 'b', 'c'], size=60).tolist()
        training_set = TrainingSet(features, labels)

        for query in rng.integers(-3, 4, size=(15, 2)).astype(np.float64):
            distances = distances_to(features, query)

            for k in (1, 4, 9, 60):
                by_insertion = KNNClassifier(training_set, k=k)
                expected = list(np.argsort(distances, kind='stable')[:k])
                self.assertEqual([n.index for n in by_insertion.kneighbors(query)], expected)

                by_label = KNNClassifier(training_set, k=k, distance_tie_break='label')
                expected = sorted(range(60), key=lambda i: (distances[i], labels[i], i))[:k]
                self.assertEqual([n.index for n in by_label.kneighbors(query)], expected)

    def test_matches_sklearn(self):
        """Test agreement with scikit-learn's brute-force KNN."""
        rng = np.random.default_rng(11)
        features = rng.normal(size=(120, 4))
        labels = rng.integers(0, 3, size=120)
        queries = rng.normal(size=(50, 4))

        reference = KNeighborsClassifier(n_neighbors=5, algorithm='brute', metric='euclidean')
        reference.fit(features, labels)

        classifier = KNNClassifier(
            TrainingSet(features, labels.tolist()),
            k=5,
            vote_tie_break='lexical'
        )

        self.assertEqual(list(classifier.predict_many(queries)), list(reference.predict(queries)))


class TestClassImbalance(unittest.TestCase):
    """Test majority bias on an imbalanced training set."""

    def test_minority_class_never_wins(self):
        """Test that 3 M against 357 B at k=7 always predicts B."""
        rng = np.random.default_rng(1)
        benign = rng.normal(loc=0.0, scale=1.0, size=(357, 2))
        malignant = rng.normal(loc=3.0, scale=0.2, size=(3, 2))

        training_set = TrainingSet(
            np.vstack([benign, malignant]),
            ['B'] * 357 + ['M'] * 3
        )
        classifier = KNNClassifier(training_set, k=7)

        queries = np.vstack([rng.normal(scale=3.0, size=(30, 2)), malignant])
        for query in queries:
            self.assertEqual(classifier.predict(query), 'B')
            self.assertLessEqual(classifier.predict_votes(query)['M'], 3)


if __name__ == '__main__':
    unittest.main()
