"""
Training and Evaluation Module

This module fits the K-nearest-neighbours classifier on labelled features and
scores it on held-out data. "Fitting" a K-NN model only builds the training
set; the work happens at prediction time, which is what the timings measure.
"""

import logging
import time
from typing import Dict, Optional

import numpy as np
from sklearn.metrics import accuracy_score, confusion_matrix
from sklearn.model_selection import train_test_split

from knn_classifier.dataset import TrainingSet
from knn_classifier.errors import InvalidConfiguration
from knn_classifier.knn import KNNClassifier
from knn_classifier.preprocessing import apply_standardization, oversample, standardize_training_set
from knn_classifier.state import get_config_value
from knn_classifier.utils import setup_logging


logger = logging.getLogger(__name__)


def prepare_classifier(training_set: TrainingSet, config: Dict) -> Dict:
    """
    Apply the configured log level and preprocessing, then build a classifier.

    Standardization (if enabled) runs before oversampling, so duplicated
    observations do not shift the fitted mean and std.

    Args:
        training_set: Raw training set
        config: Configuration dictionary (see knn_classifier.state)

    Returns:
        Dictionary containing:
            - classifier: KNNClassifier on the prepared training set
            - training_set: The prepared training set
            - mean: Fitted feature means (None if not standardized)
            - std: Fitted feature standard deviations (None if not standardized)
    """
    setup_logging(get_config_value(config, 'log_level', 'INFO'))

    mean, std = None, None

    if get_config_value(config, 'preprocessing.standardize', True):
        training_set, mean, std = standardize_training_set(training_set)

    if get_config_value(config, 'preprocessing.oversample', False):
        training_set = oversample(
            training_set,
            random_state=get_config_value(config, 'preprocessing.random_seed', 42),
            over_ratio=get_config_value(config, 'preprocessing.over_ratio', 1.0)
        )

    classifier = KNNClassifier.from_config(training_set, config)
    logger.info(f"Prepared {classifier!r}")

    return {
        'classifier': classifier,
        'training_set': training_set,
        'mean': mean,
        'std': std
    }


def evaluate_classifier(
    classifier: KNNClassifier,
    test_features: np.ndarray,
    test_labels,
    mean: Optional[np.ndarray] = None,
    std: Optional[np.ndarray] = None
) -> Dict:
    """
    Evaluate a classifier on a labelled test set.

    Args:
        classifier: Classifier to evaluate
        test_features: Test feature matrix (n_samples, n_features)
        test_labels: True labels for test samples
        mean, std: Standardization fitted on the training data, applied to
            the test features when given

    Returns:
        dict: Evaluation metrics containing:
            - accuracy: Overall accuracy (0-1)
            - per_class_accuracy: Dict mapping label to recall on that label
            - confusion_matrix: Confusion matrix (rows: true, cols: predicted),
              in classifier class order
            - n_samples: Number of test samples
            - predictions: Model predictions
            - inference_time_ms_per_sample: Mean prediction latency

    Raises:
        InvalidConfiguration: If features and labels have different lengths
    """
    test_features = np.asarray(test_features, dtype=np.float64)
    test_labels = list(test_labels)

    if len(test_features) != len(test_labels):
        raise InvalidConfiguration("Number of test features must match number of test labels")

    if len(test_labels) == 0:
        raise InvalidConfiguration("Cannot evaluate on an empty test set")

    if mean is not None and std is not None:
        test_features = apply_standardization(test_features, mean, std)

    logger.info(f"Evaluating classifier on {len(test_labels)} test samples")

    start_time = time.time()
    predictions = classifier.predict_many(test_features)
    inference_time = time.time() - start_time

    predicted = list(predictions)
    classes = list(classifier.training_set.classes)

    accuracy = accuracy_score(test_labels, predicted)
    conf_matrix = confusion_matrix(test_labels, predicted, labels=classes)

    per_class_accuracy = {}
    for idx, label in enumerate(classes):
        support = conf_matrix[idx].sum()
        if support > 0:
            per_class_accuracy[label] = float(conf_matrix[idx, idx] / support)

    logger.info(f"Overall accuracy: {accuracy:.4f}")

    return {
        'accuracy': float(accuracy),
        'per_class_accuracy': per_class_accuracy,
        'confusion_matrix': conf_matrix,
        'n_samples': len(test_labels),
        'predictions': predictions,
        'inference_time_ms_per_sample': (inference_time / len(test_labels)) * 1000
    }


def train_knn_model(
    features: np.ndarray,
    labels,
    test_split: float = 0.25,
    n_neighbors: int = 5,
    random_state: int = 42,
    standardize: bool = True,
    vote_tie_break: str = 'nearest',
    verbose: bool = True
) -> Dict:
    """
    Split labelled data, fit a KNN classifier and score it.

    Args:
        features: Feature array of shape (n_samples, n_features)
        labels: Label array of shape (n_samples,)
        test_split: Proportion of data held out for testing
        n_neighbors: Number of neighbours for KNN
        random_state: Seed for the stratified split
        standardize: Whether to standardize with statistics from the train split
        vote_tie_break: Vote tie-break policy for the classifier
        verbose: Whether to log training progress

    Returns:
        Dictionary containing:
            - model: Fitted KNNClassifier instance
            - train_accuracy: Training accuracy
            - test_accuracy: Test accuracy
            - training_time: Time to build the training set in seconds
            - inference_time_ms_per_sample: Test prediction time per sample
            - n_samples: Number of training samples
            - confusion_matrix: Confusion matrix on test set
            - mean, std: Standardization parameters (None if disabled)
    """
    features = np.asarray(features, dtype=np.float64)
    labels = np.asarray(labels, dtype=object)

    if verbose:
        logger.info(f"Training KNN model (n_neighbors={n_neighbors})")
        logger.info(f"Dataset size: {len(features)} samples")

    X_train, X_test, y_train, y_test = train_test_split(
        features, labels, test_size=test_split, random_state=random_state, stratify=labels
    )

    if verbose:
        logger.info(f"Train samples: {len(X_train)}, Test samples: {len(X_test)}")

    start_time_train = time.time()
    training_set = TrainingSet(X_train, y_train.tolist())
    mean, std = None, None
    if standardize:
        training_set, mean, std = standardize_training_set(training_set)
    model = KNNClassifier(training_set, k=n_neighbors, vote_tie_break=vote_tie_break)
    training_time = time.time() - start_time_train

    if verbose:
        logger.info(f"Training complete! Time: {training_time:.3f} seconds")

    train_metrics = evaluate_classifier(model, X_train, y_train, mean, std)
    test_metrics = evaluate_classifier(model, X_test, y_test, mean, std)

    if verbose:
        logger.info(f"Train Accuracy: {train_metrics['accuracy'] * 100:.2f}%")
        logger.info(f"Test Accuracy: {test_metrics['accuracy'] * 100:.2f}%")
        logger.info(f"Inference Time: {test_metrics['inference_time_ms_per_sample']:.3f} ms/sample")

    return {
        'model': model,
        'train_accuracy': train_metrics['accuracy'],
        'test_accuracy': test_metrics['accuracy'],
        'training_time': training_time,
        'inference_time_ms_per_sample': test_metrics['inference_time_ms_per_sample'],
        'n_samples': len(X_train),
        'confusion_matrix': test_metrics['confusion_matrix'],
        'mean': mean,
        'std': std
    }
