"""
Training Set

This module holds labelled observations and the training set the classifier
reads from. A training set is validated once when it is built and its arrays
are frozen afterwards, so it can be shared read-only between threads.
"""

from typing import Dict, Iterator, List, NamedTuple, Optional, Sequence

import numpy as np
import pandas as pd

from knn_classifier.errors import InvalidConfiguration
from knn_classifier.labels import sorted_classes


class LabelledObservation(NamedTuple):
    """A feature vector paired with its class label."""

    features: np.ndarray
    label: object


class TrainingSet:
    """
    Ordered, read-only collection of labelled observations.

    Attributes:
        features (np.ndarray): Frozen feature matrix, shape (n, m).
        labels (tuple): Class label of each observation, in insertion order.
        classes (tuple): Distinct labels in ascending order.
        codes (np.ndarray): Index into ``classes`` for each observation.
        feature_names (tuple or None): Optional predictor names.
    """

    def __init__(self, features, labels, feature_names: Optional[Sequence[str]] = None):
        features = np.array(features, dtype=np.float64)
        labels = list(labels)

        if features.ndim != 2:
            raise InvalidConfiguration(f"features must be a 2D array, got {features.ndim}D array")

        n_samples, n_features = features.shape
        if n_samples == 0:
            raise InvalidConfiguration("Training set must contain at least one observation")

        if n_features == 0:
            raise InvalidConfiguration("Feature vectors must have at least one dimension")

        if n_samples != len(labels):
            raise InvalidConfiguration(
                f"features and labels must have the same number of samples. "
                f"Got features: {n_samples}, labels: {len(labels)}"
            )

        if not np.all(np.isfinite(features)):
            raise InvalidConfiguration("features must not contain NaN or infinite values")

        if feature_names is not None:
            feature_names = tuple(feature_names)
            if len(feature_names) != n_features:
                raise InvalidConfiguration(
                    f"Got {len(feature_names)} feature names for {n_features} features"
                )

        classes = sorted_classes(labels)
        class_index = {label: idx for idx, label in enumerate(classes)}

        features.setflags(write=False)
        codes = np.array([class_index[label] for label in labels], dtype=np.int64)
        codes.setflags(write=False)

        self._features = features
        self._labels = tuple(labels)
        self._classes = tuple(classes)
        self._codes = codes
        self._feature_names = feature_names

    @classmethod
    def from_observations(cls, observations, feature_names: Optional[Sequence[str]] = None) -> "TrainingSet":
        """Build a training set from an iterable of LabelledObservation."""
        observations = list(observations)
        if not observations:
            raise InvalidConfiguration("Training set must contain at least one observation")

        features = [np.asarray(obs.features, dtype=np.float64) for obs in observations]
        dims = {vector.shape for vector in features}
        if len(dims) != 1:
            raise InvalidConfiguration(f"All observations must have the same dimensionality, got {sorted(dims)}")

        return cls(np.vstack(features), [obs.label for obs in observations], feature_names)

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        label_column: str,
        feature_columns: Optional[List[str]] = None
    ) -> "TrainingSet":
        """
        Build a training set from a pandas DataFrame.

        Args:
            df: Table with one row per observation
            label_column: Column holding the class label
            feature_columns: Predictor columns (default: every other column)

        Returns:
            TrainingSet with feature names taken from the column names

        Raises:
            InvalidConfiguration: If a column is missing or not numeric
        """
        if label_column not in df.columns:
            raise InvalidConfiguration(f"Label column '{label_column}' not found")

        if feature_columns is None:
            feature_columns = [col for col in df.columns if col != label_column]

        missing = [col for col in feature_columns if col not in df.columns]
        if missing:
            raise InvalidConfiguration(f"Feature columns not found: {missing}")

        non_numeric = [col for col in feature_columns if not pd.api.types.is_numeric_dtype(df[col])]
        if non_numeric:
            raise InvalidConfiguration(f"Feature columns must be numeric: {non_numeric}")

        return cls(
            df[feature_columns].to_numpy(dtype=np.float64),
            df[label_column].tolist(),
            feature_names=[str(col) for col in feature_columns]
        )

    @property
    def features(self) -> np.ndarray:
        return self._features

    @property
    def labels(self) -> tuple:
        return self._labels

    @property
    def classes(self) -> tuple:
        return self._classes

    @property
    def codes(self) -> np.ndarray:
        return self._codes

    @property
    def feature_names(self) -> Optional[tuple]:
        return self._feature_names

    @property
    def n_observations(self) -> int:
        return self._features.shape[0]

    @property
    def n_features(self) -> int:
        return self._features.shape[1]

    def __len__(self) -> int:
        return self.n_observations

    def __getitem__(self, index: int) -> LabelledObservation:
        return LabelledObservation(self._features[index], self._labels[index])

    def __iter__(self) -> Iterator[LabelledObservation]:
        for index in range(self.n_observations):
            yield self[index]

    def __repr__(self) -> str:
        return (
            f"TrainingSet(n_observations={self.n_observations}, "
            f"n_features={self.n_features}, classes={list(self._classes)})"
        )


def class_counts(training_set: TrainingSet) -> Dict[object, int]:
    """
    Count observations per class.

    Returns:
        Dictionary label -> count, in class order
    """
    counts = np.bincount(training_set.codes, minlength=len(training_set.classes))
    return {label: int(count) for label, count in zip(training_set.classes, counts)}


def get_training_set_info(training_set: TrainingSet) -> Dict:
    """
    Extract metadata and statistics from a training set.

    Args:
        training_set: Training set to describe

    Returns:
        Dictionary containing:
            - classes: List of class labels
            - n_observations: Total number of observations
            - n_features: Feature vector dimensionality
            - samples_per_class: Number of observations per class
            - feature_names: Predictor names (or None)
    """
    return {
        "classes": list(training_set.classes),
        "n_observations": training_set.n_observations,
        "n_features": training_set.n_features,
        "samples_per_class": class_counts(training_set),
        "feature_names": list(training_set.feature_names) if training_set.feature_names else None
    }
