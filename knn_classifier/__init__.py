"""
K-nearest-neighbours classification with explicit distance and vote policies.
"""

from .dataset import LabelledObservation, TrainingSet, class_counts, get_training_set_info
from .distance import euclidean_distance, manhattan_distance
from .errors import DimensionMismatch, InvalidConfiguration, KNNError
from .knn import KNNClassifier, Neighbour
from .labels import Diagnosis, coerce_labels

__all__ = [
    'KNNClassifier',
    'Neighbour',
    'TrainingSet',
    'LabelledObservation',
    'class_counts',
    'get_training_set_info',
    'euclidean_distance',
    'manhattan_distance',
    'KNNError',
    'InvalidConfiguration',
    'DimensionMismatch',
    'Diagnosis',
    'coerce_labels',
]
