"""Decision threshold calibration from genuine and impostor scores."""

from collections.abc import Mapping, Sequence

import numpy as np

from voiceid.domain_service.settings import settings
from voiceid.engine.voiceprint.similarity import cosine_similarity


def collect_scores(
    speakers: Mapping[str, Sequence[np.ndarray]],
) -> tuple[list[float], list[float]]:
    """Score every embedding pair.

    Genuine scores compare distinct embeddings of the same speaker, impostor
    scores compare embeddings of different speakers (each ordered pair once).

    Returns:
        Tuple of (genuine scores, impostor scores).
    """
    genuine: list[float] = []
    impostor: list[float] = []
    items = list(speakers.items())

    for i, (_, embeddings_i) in enumerate(items):
        for j, (_, embeddings_j) in enumerate(items):
            if i == j:
                for k in range(len(embeddings_i)):
                    for m in range(k + 1, len(embeddings_i)):
                        genuine.append(cosine_similarity(embeddings_i[k], embeddings_i[m]))
            else:
                for a in embeddings_i:
                    for b in embeddings_j:
                        impostor.append(cosine_similarity(a, b))

    return genuine, impostor


def f1_at_threshold(genuine: Sequence[float], impostor: Sequence[float], threshold: float) -> float:
    """F1 of accepting scores >= threshold, genuine being the positive class."""
    tp = sum(1 for s in genuine if s >= threshold)
    fn = len(genuine) - tp
    fp = sum(1 for s in impostor if s >= threshold)

    precision = tp / (tp + fp) if tp + fp else 0.0
    recall = tp / (tp + fn) if tp + fn else 0.0
    if precision + recall == 0:
        return 0.0
    return 2 * precision * recall / (precision + recall)


def calculate_optimal_threshold(
    genuine: Sequence[float],
    impostor: Sequence[float],
    start: float | None = None,
    stop: float | None = None,
    step: float | None = None,
) -> float:
    """Sweep candidate thresholds and return the lowest one with maximal F1.

    Returns 0.5 when no candidate reaches a positive F1.
    """
    if start is None:
        start = settings.calibration_sweep_start
    if stop is None:
        stop = settings.calibration_sweep_stop
    if step is None:
        step = settings.calibration_sweep_step

    best_threshold = 0.5
    best_f1 = 0.0

    count = int(round((stop - start) / step)) + 1
    for k in range(count):
        threshold = round(start + k * step, 10)
        f1 = f1_at_threshold(genuine, impostor, threshold)
        if f1 > best_f1:
            best_f1 = f1
            best_threshold = threshold

    return best_threshold


def calibrate(speakers: Mapping[str, Sequence[np.ndarray]]) -> float | None:
    """Clamped identification threshold for the enrolled population.

    Returns:
        The new threshold, or None when there are fewer than two speakers or
        either score set is empty.
    """
    if len(speakers) < 2:
        return None

    genuine, impostor = collect_scores(speakers)
    if not genuine or not impostor:
        return None

    optimal = calculate_optimal_threshold(genuine, impostor)
    return max(
        settings.calibration_min_threshold,
        min(optimal, settings.calibration_max_threshold),
    )
