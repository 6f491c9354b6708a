"""
Coordinate transforms between the three spaces a drawing goes through:

- view (model) space: meters, local to one drawing view's scale and origin
- sheet space: meters, shared by every view and annotation of a sheet
- output space: millimeters, Y axis flipped so the origin is top-left
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

MM_PER_METER = 1000.0


def meters_to_mm(value: float) -> float:
    return value * MM_PER_METER


def y_flip_matrix(sheet_height: float) -> np.ndarray:
    """
    Affine matrix flipping the Y axis and translating by the sheet height.

        | 1   0   0 |   | x |   | x     |
        | 0  -1   H | x | y | = | H - y |
        | 0   0   1 |   | 1 |   | 1     |
    """
    return np.array([
        [1.0, 0.0, 0.0],
        [0.0, -1.0, sheet_height],
        [0.0, 0.0, 1.0],
    ])


def apply_y_flip(matrix: np.ndarray, x: float, y: float) -> Tuple[float, float]:
    """Apply a flip matrix built by y_flip_matrix to a point"""
    result = matrix @ np.array([x, y, 1.0])
    return float(result[0]), float(result[1])


def flip_y(x: float, y: float, sheet_height: float) -> Tuple[float, float]:
    """Flip a point vertically; applying it twice returns the original point"""
    return x, sheet_height - y


@dataclass(frozen=True)
class ViewPlacement:
    """Scale and anchor of a drawing view on its sheet (origin in mm)"""
    scale: float
    origin_x: float
    origin_y: float


class CoordinatePipeline:
    """
    Maps points from view or sheet space to output space.

    Usage:
        pipeline = CoordinatePipeline(sheet_height=297.0)
        x, y = pipeline.view_to_output(placement, 0.01, 0.02)
        x, y = pipeline.sheet_to_output(0.1, 0.2)
    """

    def __init__(self, sheet_height: float):
        """
        Args:
            sheet_height: Sheet height in output units (mm)
        """
        self.sheet_height = sheet_height
        self.matrix = y_flip_matrix(sheet_height)

    def model_to_sheet(self, placement: ViewPlacement, x: float, y: float) -> Tuple[float, float]:
        """View space (meters) to sheet space (mm), no flip"""
        sheet_x = meters_to_mm(x) * placement.scale + placement.origin_x
        sheet_y = meters_to_mm(y) * placement.scale + placement.origin_y
        return sheet_x, sheet_y

    def view_to_output(self, placement: ViewPlacement, x: float, y: float) -> Tuple[float, float]:
        """View space (meters) to output space"""
        sheet_x, sheet_y = self.model_to_sheet(placement, x, y)
        return apply_y_flip(self.matrix, sheet_x, sheet_y)

    def sheet_to_output(self, x: float, y: float) -> Tuple[float, float]:
        """
        Sheet space (meters) to output space.

        Annotations, detail circles and break lines are already expressed in
        sheet space and skip the view placement.
        """
        return apply_y_flip(self.matrix, meters_to_mm(x), meters_to_mm(y))

    def output_to_sheet(self, x: float, y: float) -> Tuple[float, float]:
        """Output space back to sheet orientation (mm)"""
        return apply_y_flip(self.matrix, x, y)
