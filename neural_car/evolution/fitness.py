"""
neural_car/evolution/fitness.py

Fitness normalization for a scored population.

Distance is what the host measures. Fitness is distance relative to the
rest of the generation, so that selection pressure does not depend on the
absolute scale of the track.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, Sequence
import numpy as np

from .genotype import Genotype


@dataclass
class PopulationStatistics:
    """Summary of one scored generation."""

    size: int
    mean_distance: float
    max_distance: float
    min_distance: float
    mean_fitness: float
    max_fitness: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class FitnessCalculator:
    """
    Turns raw per-trial distances into comparable fitness values.

    fitness_i = distance_i / mean(distance)

    A generation in which nobody moved gets zero fitness everywhere;
    selection treats that as a uniform wheel.
    """

    @staticmethod
    def normalize(population: Sequence[Genotype]) -> None:
        """Write fitness onto every member of the population."""
        if not population:
            return

        distances = np.array([member.distance for member in population], dtype=np.float64)
        mean = distances.sum() / len(population)

        if mean == 0:
            for member in population:
                member.fitness = 0.0
            return

        for member, distance in zip(population, distances):
            member.fitness = float(distance / mean)


def population_statistics(population: Sequence[Genotype]) -> PopulationStatistics:
    """Distance and fitness summary, used for history and logging."""
    if not population:
        return PopulationStatistics(0, 0.0, 0.0, 0.0, 0.0, 0.0)

    distances = np.array([m.distance for m in population], dtype=np.float64)
    fitnesses = np.array([m.fitness for m in population], dtype=np.float64)
    return PopulationStatistics(
        size=len(population),
        mean_distance=float(distances.mean()),
        max_distance=float(distances.max()),
        min_distance=float(distances.min()),
        mean_fitness=float(fitnesses.mean()),
        max_fitness=float(fitnesses.max()),
    )
