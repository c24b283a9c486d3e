"""
Preprocessing Module

Standardization and class rebalancing for training sets. The classifier is
sensitive to feature scale (a predictor with a larger range dominates the
distance) and to class counts (an overrepresented label wins near-ties), so
training data is normally passed through these helpers first.

Random draws always come from an explicit ``random_state`` (an int seed or a
numpy Generator); nothing here touches numpy's global random state.
"""

import logging
from typing import Tuple, Union

import numpy as np

from knn_classifier.dataset import TrainingSet, class_counts
from knn_classifier.errors import InvalidConfiguration


logger = logging.getLogger(__name__)

RandomState = Union[int, np.random.Generator, None]


def _as_generator(random_state: RandomState) -> np.random.Generator:
    if isinstance(random_state, np.random.Generator):
        return random_state
    return np.random.default_rng(random_state)


def standardize_features(features: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Normalize features using z-score normalization.

    Args:
        features: Feature array of shape (n_samples, n_features)

    Returns:
        Tuple of (normalized_features, mean, std) where:
            - normalized_features: Normalized feature array
            - mean: Mean values for each feature dimension
            - std: Standard deviation for each feature dimension
              (1 for constant columns)
    """
    features = np.asarray(features, dtype=np.float64)

    mean = np.mean(features, axis=0)
    std = np.std(features, axis=0)

    std = np.where(std == 0, 1, std)

    normalized_features = (features - mean) / std

    return normalized_features, mean, std


def apply_standardization(features, mean: np.ndarray, std: np.ndarray) -> np.ndarray:
    """
    Apply a previously fitted standardization to new data (e.g. queries).

    Raises:
        InvalidConfiguration: If the feature width does not match mean/std
    """
    features = np.asarray(features, dtype=np.float64)
    if features.shape[-1] != np.shape(mean)[-1]:
        raise InvalidConfiguration(
            f"Cannot standardize {features.shape[-1]} features with parameters for {np.shape(mean)[-1]}"
        )
    return (features - mean) / std


def standardize_training_set(training_set: TrainingSet) -> Tuple[TrainingSet, np.ndarray, np.ndarray]:
    """
    Standardize every predictor of a training set.

    Returns:
        Tuple of (new_training_set, mean, std); the input is left unchanged
    """
    normalized, mean, std = standardize_features(training_set.features)
    logger.info(f"Standardized {training_set.n_features} features over {training_set.n_observations} observations")

    return TrainingSet(normalized, training_set.labels, training_set.feature_names), mean, std


def subsample_class(
    training_set: TrainingSet,
    label,
    n: int,
    random_state: RandomState = None
) -> TrainingSet:
    """
    Keep only n randomly drawn observations of one class.

    Observations of other classes are kept as they are, and the original
    order is preserved.

    Args:
        training_set: Source training set
        label: Class to subsample
        n: Number of observations of that class to keep
        random_state: Seed or Generator for the draw

    Returns:
        New training set

    Raises:
        InvalidConfiguration: If the label is unknown or n is out of range
    """
    if label not in training_set.classes:
        raise InvalidConfiguration(f"Label {label!r} is not present in the training set")

    if isinstance(n, bool) or not isinstance(n, (int, np.integer)):
        raise InvalidConfiguration(f"n must be an integer, got {n!r}")

    n = int(n)
    positions = np.array([i for i, lab in enumerate(training_set.labels) if lab == label])

    if n < 0 or n > len(positions):
        raise InvalidConfiguration(f"n must be between 0 and {len(positions)} for label {label!r}, got {n}")

    rng = _as_generator(random_state)
    chosen = set(rng.choice(positions, size=n, replace=False).tolist())

    keep = [i for i, lab in enumerate(training_set.labels) if lab != label or i in chosen]

    return TrainingSet(
        training_set.features[keep],
        [training_set.labels[i] for i in keep],
        training_set.feature_names
    )


def oversample(
    training_set: TrainingSet,
    random_state: RandomState = None,
    over_ratio: float = 1.0
) -> TrainingSet:
    """
    Rebalance a training set by duplicating minority-class observations.

    Each class is topped up (sampling its own observations with replacement)
    until it holds at least round(over_ratio * majority_count) observations.
    The original observations keep their order; duplicates are appended
    class by class, in class order.

    Args:
        training_set: Source training set
        random_state: Seed or Generator for the draw
        over_ratio: Target size of each class relative to the majority class

    Returns:
        New, rebalanced training set

    Raises:
        InvalidConfiguration: If over_ratio is not positive
    """
    if not over_ratio > 0:
        raise InvalidConfiguration(f"over_ratio must be positive, got {over_ratio}")

    counts = class_counts(training_set)
    target = int(round(over_ratio * max(counts.values())))
    rng = _as_generator(random_state)

    extra = []
    for code, label in enumerate(training_set.classes):
        missing = target - counts[label]
        if missing <= 0:
            continue
        positions = np.flatnonzero(training_set.codes == code)
        extra.extend(rng.choice(positions, size=missing, replace=True).tolist())
        logger.info(f"Oversampling class {label!r}: {counts[label]} -> {target}")

    if not extra:
        return training_set

    order = list(range(training_set.n_observations)) + extra

    return TrainingSet(
        training_set.features[order],
        [training_set.labels[i] for i in order],
        training_set.feature_names
    )
