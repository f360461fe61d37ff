"""
neural_car/evolution/algorithms.py

Generational genetic algorithm over network weight vectors.

One generation:
- Normalize distances into fitness
- Carry the elite over untouched
- Spin the roulette for parents
- Pair parents, uniform crossover
- Point-mutate the offspring
- Offspring + elite become the next population

The host owns the trials. The algorithm only ever sees a population
whose distances have all been written.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, List, Any, Optional, Sequence, Tuple
import logging

import numpy as np

from neural_car.errors import ConfigurationError
from .genotype import Genotype
from .fitness import FitnessCalculator, population_statistics
from .selection import RouletteSelector

logger = logging.getLogger(__name__)


@dataclass
class GeneticConfig:
    """Configuration for the genetic algorithm."""
    population_size: int = 20
    min_gene: float = -3.0
    max_gene: float = 3.0
    crossover_probability: float = 0.6
    mutation_probability: float = 0.1
    elite_count: int = 2
    seed: Optional[int] = 42

    def validate(self) -> None:
        if self.elite_count < 0:
            raise ConfigurationError(f"elite_count must be >= 0, got {self.elite_count}")
        if self.population_size - self.elite_count < 2:
            raise ConfigurationError(
                f"population_size {self.population_size} leaves fewer than two parents "
                f"next to {self.elite_count} elite members"
            )
        if self.min_gene > self.max_gene:
            raise ConfigurationError(
                f"min_gene {self.min_gene} is greater than max_gene {self.max_gene}"
            )
        for name in ("crossover_probability", "mutation_probability"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must lie in [0, 1], got {value}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class GenerationState(Enum):
    """Where the current population is in its life cycle."""
    EMPTY = "empty"
    SEEDED = "seeded"
    SCORED = "scored"
    ADVANCED = "advanced"


class GeneticAlgorithm:
    """
    Elitist generational GA with roulette selection.

    All randomness (initial genes, roulette spins, pairing, crossover
    coins, mutation sites and values) comes from one generator, so a
    seed reproduces a whole run.
    """

    def __init__(
        self,
        config: GeneticConfig,
        gene_count: int,
        rng: Optional[np.random.Generator] = None,
    ):
        config.validate()
        if gene_count < 1:
            raise ConfigurationError(f"gene_count must be positive, got {gene_count}")

        self.config = config
        self.gene_count = gene_count
        self.rng = rng if rng is not None else np.random.default_rng(config.seed)
        self.selector = RouletteSelector(self.rng)

        self.population: List[Genotype] = []
        self.state = GenerationState.EMPTY
        self.generation = 0
        self.history: List[Dict[str, Any]] = []

        # Best seen so far
        self.best_genotype: Optional[Genotype] = None
        self.best_distance = float('-inf')

    # ==================== Life cycle ====================

    def initialize(self) -> List[Genotype]:
        """Seed a random population."""
        self.population = [
            Genotype.random(
                self.gene_count,
                self.config.min_gene,
                self.config.max_gene,
                self.rng,
            )
            for _ in range(self.config.population_size)
        ]
        self.state = GenerationState.SEEDED
        self.generation = 0
        logger.debug(
            f"Seeded {len(self.population)} genotypes with {self.gene_count} genes"
        )
        return self.population

    def mark_scored(self) -> None:
        """Host signals that every distance of the current population is recorded."""
        self.state = GenerationState.SCORED

    def ask(self) -> List[Genotype]:
        """Population waiting for trials; seeds one on first call."""
        if self.state is GenerationState.EMPTY:
            self.initialize()
        return self.population

    def tell(self, distances: Sequence[float]) -> List[Genotype]:
        """Record one distance per genotype from ask() and advance."""
        if len(distances) != len(self.population):
            raise ValueError(
                f"Expected {len(self.population)} distances, got {len(distances)}"
            )
        for member, distance in zip(self.population, distances):
            member.distance = float(distance)
        self.mark_scored()
        return self.advance_generation()

    def advance_generation(
        self, population: Optional[List[Genotype]] = None
    ) -> List[Genotype]:
        """
        Breed the next generation from a scored population.

        Args:
            population: Scored genotypes; defaults to the current population

        Returns:
            Next population: mutated offspring followed by the elite
        """
        if population is None:
            population = self.population
        size = len(population)
        if size - self.config.elite_count < 2:
            raise ConfigurationError(
                f"Population of {size} leaves fewer than two parents next to "
                f"{self.config.elite_count} elite members"
            )

        FitnessCalculator.normalize(population)
        self._track_best(population)

        elite = self.select_elite(population)
        parents = self.selector.select(population, size - len(elite))
        offspring = self.breed(parents, size - len(elite))

        for child in offspring:
            if self.rng.random() < self.config.mutation_probability:
                self.mutate(child)

        next_population = offspring + elite

        self.generation += 1
        self.population = next_population
        self.state = GenerationState.ADVANCED
        self._record(population, len(parents), len(offspring))

        logger.debug(
            f"Generation {self.generation}: elite distances "
            f"{[round(e.distance, 2) for e in elite]}, "
            f"{len(offspring)} offspring from {len(parents)} parents"
        )
        return next_population

    # ==================== Operators ====================

    def select_elite(self, population: Sequence[Genotype]) -> List[Genotype]:
        """Highest fitness first; ties keep population order."""
        order = sorted(
            range(len(population)),
            key=lambda i: population[i].fitness,
            reverse=True,
        )
        return [population[i] for i in order[:self.config.elite_count]]

    def pair_parents(
        self, parents: Sequence[Genotype]
    ) -> List[Tuple[Genotype, Genotype]]:
        """
        Consume the pool in random disjoint pairs.

        An odd pool leaves one parent without a partner.
        """
        unused = list(range(len(parents)))
        pairs = []
        while len(unused) >= 2:
            first = unused.pop(int(self.rng.integers(len(unused))))
            second = unused.pop(int(self.rng.integers(len(unused))))
            pairs.append((parents[first], parents[second]))

        if unused:
            logger.warning(
                f"Odd parent pool of {len(parents)}: one parent left unpaired, "
                f"next generation shrinks by one"
            )
        return pairs

    def uniform_crossover(
        self, parent1: Genotype, parent2: Genotype
    ) -> Tuple[Genotype, Genotype]:
        """
        Per gene, swap the parents' contributions with crossover_probability.

        Child A takes parent 2's gene where the coin lands below the
        probability and parent 1's otherwise; child B takes the other one.
        """
        if parent1.gene_count != parent2.gene_count:
            raise ValueError(
                f"Cannot cross genotypes of {parent1.gene_count} and "
                f"{parent2.gene_count} genes"
            )

        swap = self.rng.random(parent1.gene_count) < self.config.crossover_probability
        child_a = np.where(swap, parent2.genes, parent1.genes)
        child_b = np.where(swap, parent1.genes, parent2.genes)
        return Genotype.from_genes(child_a), Genotype.from_genes(child_b)

    def breed(self, parents: Sequence[Genotype], limit: int) -> List[Genotype]:
        """Cross every pair, keeping at most limit children."""
        offspring: List[Genotype] = []
        for parent1, parent2 in self.pair_parents(parents):
            for child in self.uniform_crossover(parent1, parent2):
                if len(offspring) < limit:
                    offspring.append(child)
        return offspring

    def mutate(self, genotype: Genotype) -> int:
        """Overwrite one uniformly chosen gene with a fresh draw. Returns its index."""
        index = int(self.rng.integers(genotype.gene_count))
        genotype.genes[index] = self.rng.uniform(
            self.config.min_gene, self.config.max_gene
        )
        return index

    # ==================== Bookkeeping ====================

    def _track_best(self, population: Sequence[Genotype]) -> None:
        leader = max(population, key=lambda m: m.distance)
        if leader.distance > self.best_distance:
            self.best_distance = leader.distance
            self.best_genotype = leader.copy()

    def _record(
        self,
        scored: Sequence[Genotype],
        parent_count: int,
        offspring_count: int,
    ) -> None:
        stats = population_statistics(scored)
        entry = {'generation': self.generation}
        entry.update(stats.to_dict())
        entry.update({
            'parents': parent_count,
            'offspring': offspring_count,
            'best_overall': self.best_distance,
        })
        self.history.append(entry)

    def get_best(self) -> Tuple[Optional[Genotype], float]:
        """Best genotype ever scored and its distance."""
        return self.best_genotype, self.best_distance

    def get_statistics(self) -> Dict[str, Any]:
        return {
            'generation': self.generation,
            'state': self.state.value,
            'population_size': len(self.population),
            'gene_count': self.gene_count,
            'best_distance': self.best_distance,
            'algorithm': self.__class__.__name__,
        }
