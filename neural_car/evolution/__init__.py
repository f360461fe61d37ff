"""
neural_car/evolution/

Genetic algorithm over feedforward network weights.

Key insight: the score is a black box.
- Generate genotypes (fast, centralized)
- Drive the cars (slow, owned by the host)
- Normalize, select and breed (fast, centralized)

Components:
- Genotype: weight vector plus distance and fitness
- FitnessCalculator: distance relative to the generation mean
- RouletteSelector: fitness-proportional parent sampling
- GeneticAlgorithm: elitism, uniform crossover, point mutation
"""

from .algorithms import GeneticConfig, GeneticAlgorithm, GenerationState
from .genotype import Genotype
from .fitness import FitnessCalculator, PopulationStatistics, population_statistics
from .selection import RouletteSelector, RouletteSegment

__all__ = [
    "GeneticConfig",
    "GeneticAlgorithm",
    "GenerationState",
    "Genotype",
    "FitnessCalculator",
    "PopulationStatistics",
    "population_statistics",
    "RouletteSelector",
    "RouletteSegment",
]
