"""
neural_car/evolution/selection.py

Roulette-wheel parent selection.

Each genotype owns a slice of [0, 1) proportional to its fitness.
A uniform draw lands in exactly one slice; that genotype becomes a parent.
Draws are independent, so strong genotypes are picked many times.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Sequence
import numpy as np

from .genotype import Genotype


@dataclass(frozen=True)
class RouletteSegment:
    """A genotype's slice of the wheel: [lower, upper)."""

    genotype: Genotype
    lower: float
    upper: float

    @property
    def width(self) -> float:
        return self.upper - self.lower


class RouletteSelector:
    """
    Fitness-proportional sampling with replacement.

    When every fitness is zero the wheel falls back to equal slices,
    so selection never fails on a generation that went nowhere.
    """

    def __init__(self, rng: np.random.Generator):
        self.rng = rng

    @staticmethod
    def _upper_bounds(population: Sequence[Genotype]) -> np.ndarray:
        fitnesses = np.array([m.fitness for m in population], dtype=np.float64)
        total = fitnesses.sum()
        if total == 0:
            widths = np.full(len(population), 1.0 / len(population))
        else:
            widths = fitnesses / total
        return np.cumsum(widths)

    def segments(self, population: Sequence[Genotype]) -> List[RouletteSegment]:
        """The wheel in population order."""
        if not population:
            return []
        uppers = self._upper_bounds(population)
        lowers = np.concatenate(([0.0], uppers[:-1]))
        return [
            RouletteSegment(member, float(low), float(high))
            for member, low, high in zip(population, lowers, uppers)
        ]

    def select(self, population: Sequence[Genotype], k: int) -> List[Genotype]:
        """
        Spin the wheel k times.

        Each spin picks the first segment whose upper bound is >= the draw.

        Args:
            population: Scored genotypes (fitness already normalized)
            k: Number of parents to draw

        Returns:
            k genotypes, possibly repeating
        """
        if k < 0:
            raise ValueError(f"Cannot select a negative number of parents: {k}")
        if k == 0:
            return []
        if not population:
            raise ValueError("Cannot select parents from an empty population")

        uppers = self._upper_bounds(population)
        draws = self.rng.random(k)
        indices = np.searchsorted(uppers, draws, side="left")
        # Rounding can leave the last bound a hair below 1.0
        indices = np.minimum(indices, len(population) - 1)
        return [population[i] for i in indices]
