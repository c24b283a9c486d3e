"""
Distance Metrics

Distances between a query feature vector and the rows of a feature matrix.
All metrics are symmetric, non-negative and zero only for identical vectors.
"""

from typing import Callable, Dict

import numpy as np

from knn_classifier.errors import InvalidConfiguration


def euclidean_distance(a, b) -> float:
    """
    Straight-line distance between two vectors: sqrt(sum((a - b)^2)).

    Differences are scaled by their largest magnitude before squaring, so
    very large coordinates do not overflow and very small non-zero
    differences do not round to zero.

    Args:
        a: First feature vector
        b: Second feature vector

    Returns:
        Euclidean distance as a Python float
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    return float(_euclidean_to_rows(a.reshape(1, -1), b.reshape(-1))[0])


def manhattan_distance(a, b) -> float:
    """City-block distance between two vectors: sum(|a - b|)."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    return float(np.sum(np.abs(a - b)))


def _euclidean_to_rows(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    diff = np.abs(matrix - query)
    scale = np.max(diff, axis=-1, keepdims=True)

    # identical rows have scale 0; divide by 1 instead and keep the 0 distance
    safe_scale = np.where(scale == 0, 1.0, scale)

    return scale[..., 0] * np.sqrt(np.sum((diff / safe_scale) ** 2, axis=-1))


def _manhattan_to_rows(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    return np.sum(np.abs(matrix - query), axis=-1)


# name -> vectorised distance from every row of a matrix to one query
METRICS: Dict[str, Callable[[np.ndarray, np.ndarray], np.ndarray]] = {
    'euclidean': _euclidean_to_rows,
    'manhattan': _manhattan_to_rows,
}


def get_metric(name: str) -> Callable[[np.ndarray, np.ndarray], np.ndarray]:
    """
    Look up a row-wise distance function by name.

    Raises:
        InvalidConfiguration: If the metric is unknown
    """
    if name not in METRICS:
        raise InvalidConfiguration(
            f"Unknown metric '{name}', expected one of: {', '.join(sorted(METRICS))}"
        )
    return METRICS[name]


def distances_to(matrix: np.ndarray, query: np.ndarray, metric: str = 'euclidean') -> np.ndarray:
    """
    Compute the distance from a query to every row of a feature matrix.

    Args:
        matrix: Feature matrix of shape (n_samples, n_features)
        query: Query vector of shape (n_features,)
        metric: Metric name (see METRICS)

    Returns:
        Array of shape (n_samples,) with one distance per row
    """
    return get_metric(metric)(matrix, query)
