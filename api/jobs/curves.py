"""
Metric curves for the simulated training runs.

Loss decays exponentially towards a per-architecture floor and accuracy rises
towards a per-architecture cap, both with a little uniform noise. Every
function takes the numpy Generator to draw from, so a seeded generator gives
reproducible curves.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import numpy as np


class ModelType(str, Enum):
    """Architectures the simulator knows curve constants for."""

    CNN = "CNN"
    LSTM = "LSTM"
    TRANSFORMER = "Transformer"


@dataclass(frozen=True)
class CurveProfile:
    """Curve constants for one architecture."""

    loss_amplitude: float
    loss_floor: float
    accuracy_cap: float
    accuracy_base: float
    accuracy_growth: float


CURVE_PROFILES: Dict[ModelType, CurveProfile] = {
    ModelType.CNN: CurveProfile(2.5, 0.10, 0.95, 0.30, 0.65),
    ModelType.LSTM: CurveProfile(3.0, 0.15, 0.92, 0.25, 0.67),
    ModelType.TRANSFORMER: CurveProfile(2.8, 0.12, 0.88, 0.20, 0.68),
}

LOSS_DECAY = 3.0
ACCURACY_GROWTH_RATE = 2.5
LOSS_NOISE = 0.05
ACCURACY_NOISE = 0.01
VALIDATION_LOSS_NOISE = 0.1
VALIDATION_ACCURACY_NOISE = 0.05

DEFAULT_REPORT_EPOCHS = 50
DEFAULT_NUM_CLASSES = 10


def profile_for(model_type: Union[ModelType, str, None]) -> CurveProfile:
    """Look up curve constants; unknown architectures use the CNN profile."""
    try:
        return CURVE_PROFILES[ModelType(model_type)]
    except ValueError:
        return CURVE_PROFILES[ModelType.CNN]


def generate_loss(progress: float, model_type: Union[ModelType, str], rng: np.random.Generator) -> float:
    """Training loss at ``progress`` in [0, 1]."""
    profile = profile_for(model_type)
    noise = rng.uniform(-LOSS_NOISE, LOSS_NOISE)
    return float(profile.loss_amplitude * math.exp(-LOSS_DECAY * progress) + profile.loss_floor + noise)


def generate_accuracy(progress: float, model_type: Union[ModelType, str], rng: np.random.Generator) -> float:
    """Training accuracy at ``progress`` in [0, 1], never above the profile cap."""
    profile = profile_for(model_type)
    growth = 1 - math.exp(-ACCURACY_GROWTH_RATE * progress)
    noise = rng.uniform(-ACCURACY_NOISE, ACCURACY_NOISE)
    return float(min(profile.accuracy_cap, profile.accuracy_base + profile.accuracy_growth * growth + noise))


def validation_loss(loss: float, rng: np.random.Generator) -> float:
    return float(loss + rng.uniform(0, VALIDATION_LOSS_NOISE))


def validation_accuracy(accuracy: float, rng: np.random.Generator) -> float:
    return float(max(0.0, accuracy - rng.uniform(0, VALIDATION_ACCURACY_NOISE)))


def final_metrics(accuracy: float, rng: np.random.Generator) -> Dict[str, float]:
    """Derive precision, recall and F1 from the last observed accuracy."""
    precision = accuracy * rng.uniform(0.95, 1.00)
    recall = accuracy * rng.uniform(0.93, 1.00)
    f1 = 2 * precision * recall / (precision + recall) if precision + recall > 0 else 0.0
    return {
        "accuracy": float(accuracy),
        "precision": float(precision),
        "recall": float(recall),
        "f1Score": float(f1),
    }


def training_history(
    epochs: int,
    model_type: Union[ModelType, str],
    rng: np.random.Generator,
) -> List[Dict[str, Any]]:
    """Synthetic per-epoch history for ``epochs`` epochs."""
    history = []
    for epoch in range(1, epochs + 1):
        progress = epoch / epochs
        history.append({
            "epoch": epoch,
            "loss": generate_loss(progress, model_type, rng),
            "accuracy": generate_accuracy(progress, model_type, rng),
            "valLoss": validation_loss(generate_loss(progress, model_type, rng), rng),
            "valAccuracy": validation_accuracy(generate_accuracy(progress, model_type, rng), rng),
        })
    return history


def confusion_matrix(num_classes: int, rng: np.random.Generator) -> np.ndarray:
    """Synthetic confusion matrix for a mostly-correct classifier.

    Off-diagonal cells are uniform in [0, 100); diagonal cells are boosted to
    floor(original * 5 + uniform(0, 200)).
    """
    matrix = rng.integers(0, 100, size=(num_classes, num_classes))
    diagonal = np.floor(np.diag(matrix) * 5 + rng.uniform(0, 200, size=num_classes))
    np.fill_diagonal(matrix, diagonal.astype(matrix.dtype))
    return matrix


def classification_report(matrix: np.ndarray, class_names: Optional[List[str]] = None) -> Dict[str, Dict[str, float]]:
    """Per-class precision, recall, F1 and support from a confusion matrix.

    Rows are true classes, columns are predicted classes.
    """
    num_classes = matrix.shape[0]
    names = class_names or [f"class_{i}" for i in range(num_classes)]
    true_positives = np.diag(matrix).astype(float)
    predicted = matrix.sum(axis=0).astype(float)
    support = matrix.sum(axis=1).astype(float)

    report = {}
    for i, name in enumerate(names):
        precision = true_positives[i] / predicted[i] if predicted[i] else 0.0
        recall = true_positives[i] / support[i] if support[i] else 0.0
        f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
        report[name] = {
            "precision": float(precision),
            "recall": float(recall),
            "f1Score": float(f1),
            "support": int(support[i]),
        }
    return report
