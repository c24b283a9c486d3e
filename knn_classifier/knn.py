"""
K-Nearest Neighbours Classifier

Predicts the class label of a query point by majority vote among the K
training observations closest to it. Every policy that affects the outcome
is explicit:

- metric: how distance is measured ('euclidean' by default)
- distance_tie_break: order of observations at equal distance
    'insertion' - earlier training-set position first (default)
    'label'     - lexically smaller label first, then insertion order
- vote_tie_break: winner when several labels share the highest tally
    'nearest'   - the tied label whose neighbour ranks closest (default)
    'lexical'   - the lexically smallest tied label

The classifier never scales or resamples its input; standardize and rebalance
the training set first (see knn_classifier.preprocessing).
"""

import logging
from collections import OrderedDict
from typing import Dict, List, NamedTuple

import numpy as np

from knn_classifier.constants import DISTANCE_TIE_BREAKS, VOTE_TIE_BREAKS
from knn_classifier.dataset import TrainingSet
from knn_classifier.distance import get_metric
from knn_classifier.errors import DimensionMismatch, InvalidConfiguration
from knn_classifier.state import get_config_value


logger = logging.getLogger(__name__)


class Neighbour(NamedTuple):
    """A ranked neighbour: training-set position, label and distance to the query."""

    index: int
    label: object
    distance: float


class KNNClassifier:
    """
    K-nearest-neighbours classifier over a fixed training set.

    The classifier keeps a reference to the training set and K; it holds no
    other state, so one instance can serve predictions from several threads.

    Attributes:
        training_set (TrainingSet): Observations consulted at prediction time.
        k (int): Number of neighbours consulted per prediction.
        metric (str): Distance metric name.
        distance_tie_break (str): Ranking rule for equal distances.
        vote_tie_break (str): Rule for tied label tallies.
    """

    def __init__(
        self,
        training_set: TrainingSet,
        k: int = 5,
        metric: str = 'euclidean',
        distance_tie_break: str = 'insertion',
        vote_tie_break: str = 'nearest'
    ) -> None:
        """
        Args:
            training_set: Standardized, rebalanced training set
            k: Number of neighbours (1 <= k <= training set size)
            metric: Distance metric name
            distance_tie_break: 'insertion' or 'label'
            vote_tie_break: 'nearest' or 'lexical'

        Raises:
            InvalidConfiguration: If any argument is invalid
        """
        if not isinstance(training_set, TrainingSet):
            raise InvalidConfiguration(
                f"training_set must be a TrainingSet, got {type(training_set).__name__}"
            )

        if isinstance(k, bool) or not isinstance(k, (int, np.integer)):
            raise InvalidConfiguration(f"k must be a positive integer, got {k!r}")

        k = int(k)
        n_samples = training_set.n_observations

        if k < 1:
            raise InvalidConfiguration(f"k must be a positive integer, got {k}")

        if k > n_samples:
            raise InvalidConfiguration(
                f"k ({k}) cannot exceed the number of training samples ({n_samples})"
            )

        if distance_tie_break not in DISTANCE_TIE_BREAKS:
            raise InvalidConfiguration(
                f"Unknown distance_tie_break '{distance_tie_break}', "
                f"expected one of: {', '.join(DISTANCE_TIE_BREAKS)}"
            )

        if vote_tie_break not in VOTE_TIE_BREAKS:
            raise InvalidConfiguration(
                f"Unknown vote_tie_break '{vote_tie_break}', "
                f"expected one of: {', '.join(VOTE_TIE_BREAKS)}"
            )

        self._distance_fn = get_metric(metric)

        if k % 2 == 0:
            logger.warning(f"k={k} is even; tied votes are possible and will be resolved by '{vote_tie_break}'")

        self.training_set = training_set
        self.k = k
        self.metric = metric
        self.distance_tie_break = distance_tie_break
        self.vote_tie_break = vote_tie_break

    @classmethod
    def from_config(cls, training_set: TrainingSet, config: Dict) -> "KNNClassifier":
        """
        Build a classifier from the 'classifier' section of a configuration.

        Missing keys fall back to the constructor defaults.
        """
        return cls(
            training_set,
            k=get_config_value(config, 'classifier.n_neighbors', 5),
            metric=get_config_value(config, 'classifier.metric', 'euclidean'),
            distance_tie_break=get_config_value(config, 'classifier.distance_tie_break', 'insertion'),
            vote_tie_break=get_config_value(config, 'classifier.vote_tie_break', 'nearest')
        )

    def __repr__(self) -> str:
        return (
            f"KNNClassifier(k={self.k}, metric='{self.metric}', "
            f"distance_tie_break='{self.distance_tie_break}', "
            f"vote_tie_break='{self.vote_tie_break}', "
            f"n_observations={self.training_set.n_observations})"
        )

    def _check_query(self, query) -> np.ndarray:
        query = np.asarray(query, dtype=np.float64)

        if query.ndim != 1:
            raise DimensionMismatch(
                self.training_set.n_features,
                query.size,
                f"query must be a 1D feature vector, got {query.ndim}D array"
            )

        if query.shape[0] != self.training_set.n_features:
            raise DimensionMismatch(self.training_set.n_features, query.shape[0])

        if not np.all(np.isfinite(query)):
            raise InvalidConfiguration("query must not contain NaN or infinite values")

        return query

    def _rank(self, query: np.ndarray):
        """
        Return (indices, distances) of the k nearest observations, ranked.

        Candidates are narrowed with np.partition to everything no farther than
        the k-th smallest distance, then ordered with lexsort so the result is
        identical to a full stable sort under the chosen tie-break.
        """
        distances = self._distance_fn(self.training_set.features, query)
        n_samples = distances.shape[0]

        if self.k < n_samples:
            kth_distance = np.partition(distances, self.k - 1)[self.k - 1]
            candidates = np.flatnonzero(distances <= kth_distance)
        else:
            candidates = np.arange(n_samples)

        candidate_distances = distances[candidates]

        if self.distance_tie_break == 'label':
            order = np.lexsort((candidates, self.training_set.codes[candidates], candidate_distances))
        else:
            order = np.lexsort((candidates, candidate_distances))

        nearest = candidates[order][:self.k]
        return nearest, distances[nearest]

    def _vote(self, nearest: np.ndarray) -> np.ndarray:
        """Return per-class tallies for the ranked neighbour indices."""
        return np.bincount(self.training_set.codes[nearest], minlength=len(self.training_set.classes))

    def _resolve(self, nearest: np.ndarray, tallies: np.ndarray) -> int:
        """Pick the winning class code, applying the vote tie-break."""
        tied = np.flatnonzero(tallies == tallies.max())

        if len(tied) == 1:
            return int(tied[0])

        if self.vote_tie_break == 'lexical':
            # classes are sorted, so the smallest code is the lexically smallest label
            return int(tied[0])

        tied_set = set(tied.tolist())
        for code in self.training_set.codes[nearest]:
            if int(code) in tied_set:
                return int(code)

        # unreachable: every tied class has at least one neighbour
        raise RuntimeError("Vote tie could not be resolved")

    def kneighbors(self, query) -> List[Neighbour]:
        """
        Find the k nearest training observations to a query.

        Args:
            query: Feature vector with the training set's dimensionality

        Returns:
            List of k Neighbour tuples, closest first

        Raises:
            DimensionMismatch: If the query dimensionality is wrong
        """
        query = self._check_query(query)
        nearest, distances = self._rank(query)
        labels = self.training_set.labels

        return [
            Neighbour(int(index), labels[index], float(distance))
            for index, distance in zip(nearest, distances)
        ]

    def predict(self, query):
        """
        Predict the class label of a single query point.

        1. Calculate distances to all training observations
        2. Rank them by distance (ties per distance_tie_break)
        3. Take the k nearest
        4. Return the label with the highest tally (ties per vote_tie_break)

        Args:
            query: Feature vector with the training set's dimensionality

        Returns:
            A label present in the training set

        Raises:
            DimensionMismatch: If the query dimensionality is wrong
        """
        query = self._check_query(query)
        nearest, _ = self._rank(query)
        tallies = self._vote(nearest)

        return self.training_set.classes[self._resolve(nearest, tallies)]

    def predict_votes(self, query) -> "OrderedDict[object, int]":
        """
        Count the votes each class receives from the k nearest neighbours.

        Returns:
            OrderedDict label -> votes for every class, in class order
        """
        query = self._check_query(query)
        nearest, _ = self._rank(query)
        tallies = self._vote(nearest)

        return OrderedDict(
            (label, int(count)) for label, count in zip(self.training_set.classes, tallies)
        )

    def predict_many(self, queries) -> np.ndarray:
        """
        Predict labels for a batch of queries.

        Each row is classified independently with predict().

        Args:
            queries: Array-like of shape (n_queries, n_features)

        Returns:
            Object array of predicted labels, shape (n_queries,)

        Raises:
            DimensionMismatch: If the batch has the wrong shape
        """
        queries = np.asarray(queries, dtype=np.float64)

        if queries.ndim != 2:
            raise DimensionMismatch(
                self.training_set.n_features,
                queries.size,
                f"queries must be a 2D array, got {queries.ndim}D array"
            )

        predictions = np.empty(queries.shape[0], dtype=object)
        for i, query in enumerate(queries):
            predictions[i] = self.predict(query)

        return predictions
