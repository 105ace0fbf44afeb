"""
Reconstruction and Point Cloud Metrics
"""

from typing import Any, Dict

import numpy as np

from ..data_models import FrameReconstructionResult, PointCloudSnapshot


class MetricsCalculator:
    """Summary statistics for logging and reports."""

    def frame_metrics(self, result: FrameReconstructionResult) -> Dict[str, Any]:
        """
        Per-frame acceptance statistics.

        Args:
            result: Output of FrameReconstructor.reconstruct

        Returns:
            Dictionary of counts, acceptance ratio and timing
        """
        scanned = result.scanned_pixels
        return {
            'step': result.step,
            'scanned_pixels': scanned,
            'accepted_points': result.point_count,
            'rejected_no_depth': result.rejected_no_depth,
            'rejected_low_confidence': result.rejected_low_confidence,
            'acceptance_ratio': result.point_count / scanned if scanned > 0 else 0.0,
            'processing_time': result.processing_time,
        }

    def cloud_statistics(self, snapshot: PointCloudSnapshot) -> Dict[str, Any]:
        """Point count, centroid, axis-aligned bounds and mean confidence."""
        if len(snapshot) == 0:
            return {
                'point_count': 0,
                'centroid': None,
                'bounds_min': None,
                'bounds_max': None,
                'extent': None,
                'mean_confidence': 0.0,
                'mean_color': None,
            }

        positions = snapshot.positions.astype(np.float64)
        bounds_min = positions.min(axis=0)
        bounds_max = positions.max(axis=0)

        return {
            'point_count': len(snapshot),
            'centroid': positions.mean(axis=0),
            'bounds_min': bounds_min,
            'bounds_max': bounds_max,
            'extent': bounds_max - bounds_min,
            'mean_confidence': float(snapshot.confidences.mean()),
            'mean_color': snapshot.colors.astype(np.float64).mean(axis=0),
        }
