"""Tests for threshold calibration."""

import numpy as np
import pytest

from voiceid.domain_service.calibration import (
    calculate_optimal_threshold,
    calibrate,
    collect_scores,
    f1_at_threshold,
)


class TestCalculateOptimalThreshold:
    """Tests for the F1 threshold sweep."""

    def test_separated_scores(self) -> None:
        """Test the first threshold above every impostor score wins."""
        threshold = calculate_optimal_threshold([0.9, 0.92, 0.95], [0.2, 0.3, 0.4])

        assert threshold == pytest.approx(0.41)
        assert 0.4 < threshold <= 0.9

    def test_no_positive_f1(self) -> None:
        """Test the default is kept when nothing is ever accepted."""
        assert calculate_optimal_threshold([0.1], [0.05]) == 0.5

    def test_monotonic_in_impostor_scores(self) -> None:
        """Test stronger impostors never lower the chosen threshold."""
        genuine = [0.85, 0.88, 0.9]
        low = calculate_optimal_threshold(genuine, [0.3, 0.35])
        high = calculate_optimal_threshold(genuine, [0.6, 0.7])
        assert high >= low

    def test_f1_at_threshold(self) -> None:
        """Test precision/recall arithmetic."""
        # tp=1, fn=1, fp=1 -> precision 0.5, recall 0.5
        assert f1_at_threshold([0.9, 0.1], [0.8], 0.5) == pytest.approx(0.5)
        assert f1_at_threshold([], [], 0.5) == 0.0


class TestCalibrate:
    """Tests for population calibration."""

    def test_single_speaker(self) -> None:
        """Test fewer than two speakers leaves the threshold alone."""
        assert calibrate({"a": [np.array([1.0, 0.0]), np.array([0.9, 0.1])]}) is None

    def test_no_genuine_pairs(self) -> None:
        """Test speakers with one embedding each give no genuine scores."""
        assert calibrate({"a": [np.array([1.0, 0.0])], "b": [np.array([0.0, 1.0])]}) is None

    def test_clamped_low(self) -> None:
        """Test a low optimum is raised to the minimum."""
        speakers = {
            "a": [np.array([1.0, 0.0, 0.0]), np.array([0.99, 0.141, 0.0])],
            "b": [np.array([0.0, 0.0, 1.0])],
        }
        assert calibrate(speakers) == pytest.approx(0.75)

    def test_clamped_high(self) -> None:
        """Test a high optimum is lowered to the maximum."""
        speakers = {
            "a": [np.array([1.0, 0.0, 0.0]), np.array([0.95, 0.31225, 0.0])],
            "b": [np.array([0.89, 0.1, 0.44486])],
        }
        assert calibrate(speakers) == pytest.approx(0.85)

    def test_collect_scores(self) -> None:
        """Test pair counts: k<m within a speaker, all ordered pairs across."""
        speakers = {
            "a": [np.array([1.0, 0.0])] * 3,
            "b": [np.array([0.0, 1.0])] * 2,
        }
        genuine, impostor = collect_scores(speakers)

        assert len(genuine) == 3 + 1
        assert len(impostor) == 2 * 3 * 2
        assert all(s == pytest.approx(1.0) for s in genuine)
        assert all(s == pytest.approx(0.0) for s in impostor)
