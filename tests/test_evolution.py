"""
Tests for neural_car/evolution/

Tests genotype, fitness, selection and the genetic algorithm.
"""

import pytest
import numpy as np

from neural_car.errors import ConfigurationError
from neural_car.evolution.algorithms import (
    GenerationState,
    GeneticAlgorithm,
    GeneticConfig,
)
from neural_car.evolution.fitness import FitnessCalculator, population_statistics
from neural_car.evolution.genotype import Genotype
from neural_car.evolution.selection import RouletteSelector


def make_population(distances, gene_count=6):
    population = []
    for i, distance in enumerate(distances):
        genotype = Genotype.from_genes(np.full(gene_count, float(i)))
        genotype.distance = float(distance)
        population.append(genotype)
    return population


# ==================== Genotype Tests ====================

class TestGenotype:
    """Tests for Genotype."""

    def test_random_respects_range(self):
        """Random genes lie in [min_gene, max_gene]."""
        rng = np.random.default_rng(42)
        genotype = Genotype.random(500, -3.0, 3.0, rng)

        assert genotype.gene_count == 500
        assert np.all(genotype.genes >= -3.0)
        assert np.all(genotype.genes <= 3.0)
        assert genotype.distance == 0.0
        assert genotype.fitness == 0.0

    def test_random_is_seeded(self):
        """Same seed, same genes."""
        a = Genotype.random(10, -1.0, 1.0, np.random.default_rng(1))
        b = Genotype.random(10, -1.0, 1.0, np.random.default_rng(1))
        np.testing.assert_array_equal(a.genes, b.genes)

    def test_from_genes(self):
        """Explicit genes are kept in order."""
        genotype = Genotype.from_genes([0.5, -1.5, 2.0])
        np.testing.assert_array_equal(genotype.genes, [0.5, -1.5, 2.0])

    def test_from_empty_genes_raises(self):
        """An empty gene vector is rejected."""
        with pytest.raises(ValueError):
            Genotype.from_genes([])

    def test_reset_is_idempotent(self):
        """Reset zeroes distance and fitness, leaves genes alone."""
        genotype = Genotype.from_genes([1.0, 2.0])
        genotype.distance = 12.5
        genotype.fitness = 1.3

        genotype.reset()
        genotype.reset()

        assert genotype.distance == 0.0
        assert genotype.fitness == 0.0
        np.testing.assert_array_equal(genotype.genes, [1.0, 2.0])

    def test_serialization_round_trip(self):
        """Genes survive to_dict/from_dict exactly."""
        rng = np.random.default_rng(42)
        genotype = Genotype.random(34, -3.0, 3.0, rng)
        genotype.distance = 10.0

        data = genotype.to_dict()
        restored = Genotype.from_dict(data)

        assert list(data) == ["weights"]
        np.testing.assert_array_equal(restored.genes, genotype.genes)
        assert restored.distance == 0.0
        assert restored.fitness == 0.0

    def test_from_dict_missing_field_raises(self):
        """Missing weights field is rejected."""
        with pytest.raises(ValueError):
            Genotype.from_dict({"genes": [1.0]})

    def test_copy_is_independent(self):
        """Copies do not share genes."""
        genotype = Genotype.from_genes([1.0, 2.0])
        clone = genotype.copy()
        clone.genes[0] = 9.0
        assert genotype.genes[0] == 1.0


# ==================== Fitness Tests ====================

class TestFitnessCalculator:
    """Tests for FitnessCalculator."""

    def test_normalizes_by_mean(self):
        """Distances [10, 20, 30, 40] give fitness [0.4, 0.8, 1.2, 1.6]."""
        population = make_population([10, 20, 30, 40])

        FitnessCalculator.normalize(population)

        np.testing.assert_allclose(
            [m.fitness for m in population], [0.4, 0.8, 1.2, 1.6]
        )

    def test_mean_fitness_is_one(self):
        """Average fitness is 1 whenever someone moved."""
        rng = np.random.default_rng(42)
        population = make_population(rng.uniform(0, 100, size=25))

        FitnessCalculator.normalize(population)

        assert np.mean([m.fitness for m in population]) == pytest.approx(1.0)

    def test_all_zero_distances(self):
        """Nobody moved: all fitness zero, no NaN."""
        population = make_population([0, 0, 0])
        for member in population:
            member.fitness = 5.0

        FitnessCalculator.normalize(population)

        fitnesses = [m.fitness for m in population]
        assert fitnesses == [0.0, 0.0, 0.0]
        assert not np.any(np.isnan(fitnesses))

    def test_empty_population(self):
        """Empty population is a no-op."""
        FitnessCalculator.normalize([])

    def test_population_statistics(self):
        """Statistics summarise distance and fitness."""
        population = make_population([10, 30])
        FitnessCalculator.normalize(population)

        stats = population_statistics(population)

        assert stats.size == 2
        assert stats.mean_distance == 20.0
        assert stats.max_distance == 30.0
        assert stats.min_distance == 10.0
        assert stats.max_fitness == pytest.approx(1.5)


# ==================== Selection Tests ====================

class TestRouletteSelector:
    """Tests for RouletteSelector."""

    def test_segments_partition_unit_interval(self):
        """Segments are contiguous and proportional to fitness."""
        population = make_population([0, 0, 0])
        for member, fitness in zip(population, [1.0, 3.0, 4.0]):
            member.fitness = fitness

        segments = RouletteSelector(np.random.default_rng(0)).segments(population)

        assert segments[0].lower == 0.0
        assert segments[-1].upper == pytest.approx(1.0)
        for before, after in zip(segments, segments[1:]):
            assert before.upper == after.lower
        np.testing.assert_allclose([s.width for s in segments], [0.125, 0.375, 0.5])

    def test_zero_fitness_is_uniform(self):
        """All-zero fitness gives equal slices."""
        population = make_population([0, 0, 0, 0])

        segments = RouletteSelector(np.random.default_rng(0)).segments(population)

        np.testing.assert_allclose([s.width for s in segments], [0.25] * 4)

    def test_select_returns_k_members(self):
        """Select draws exactly k parents from the population."""
        population = make_population([1, 2, 3, 4, 5])
        FitnessCalculator.normalize(population)

        parents = RouletteSelector(np.random.default_rng(42)).select(population, 12)

        assert len(parents) == 12
        assert all(any(p is m for m in population) for p in parents)

    def test_select_proportional(self):
        """Weights [1, 3] pick the second member about 75% of the time."""
        population = make_population([0, 0])
        population[0].fitness = 1.0
        population[1].fitness = 3.0

        parents = RouletteSelector(np.random.default_rng(42)).select(population, 100_000)

        share = sum(p is population[1] for p in parents) / len(parents)
        assert share == pytest.approx(0.75, abs=0.01)

    def test_select_zero_fitness_uniform(self):
        """Zero-fitness wheel still selects, roughly uniformly."""
        population = make_population([0, 0, 0, 0])
        FitnessCalculator.normalize(population)

        parents = RouletteSelector(np.random.default_rng(3)).select(population, 40_000)

        for member in population:
            share = sum(p is member for p in parents) / len(parents)
            assert share == pytest.approx(0.25, abs=0.02)

    def test_zero_fitness_member_never_selected(self):
        """A member with no fitness has no slice when others have some."""
        population = make_population([0, 10, 10])
        FitnessCalculator.normalize(population)

        parents = RouletteSelector(np.random.default_rng(5)).select(population, 5_000)

        assert not any(p is population[0] for p in parents)

    def test_select_zero(self):
        """k = 0 returns nothing."""
        assert RouletteSelector(np.random.default_rng(0)).select([], 0) == []

    def test_select_from_empty_raises(self):
        """Cannot draw from an empty population."""
        with pytest.raises(ValueError):
            RouletteSelector(np.random.default_rng(0)).select([], 3)


# ==================== Algorithm Tests ====================

class TestGeneticConfig:
    """Tests for GeneticConfig."""

    def test_defaults(self):
        """Defaults mirror the training constants."""
        config = GeneticConfig()
        assert config.min_gene == -3.0
        assert config.max_gene == 3.0
        assert config.crossover_probability == 0.6
        assert config.mutation_probability == 0.1
        assert config.elite_count == 2

    def test_population_too_small_raises(self):
        """Population must hold the elite and at least one parent."""
        with pytest.raises(ConfigurationError):
            GeneticConfig(population_size=2).validate()

    def test_single_parent_pool_raises(self):
        """A pool of one parent can never breed, so it is rejected up front."""
        with pytest.raises(ConfigurationError):
            GeneticConfig(population_size=3).validate()
        with pytest.raises(ConfigurationError):
            GeneticConfig(population_size=2, elite_count=1).validate()
        GeneticConfig(population_size=4).validate()

    def test_probability_out_of_range_raises(self):
        """Probabilities outside [0, 1] are rejected."""
        with pytest.raises(ConfigurationError):
            GeneticConfig(mutation_probability=1.5).validate()

    def test_inverted_gene_range_raises(self):
        """min_gene above max_gene is rejected."""
        with pytest.raises(ConfigurationError):
            GeneticConfig(min_gene=1.0, max_gene=-1.0).validate()

    def test_algorithm_validates_config(self):
        """Algorithm refuses an invalid configuration up front."""
        with pytest.raises(ConfigurationError):
            GeneticAlgorithm(GeneticConfig(population_size=1), gene_count=10)


class TestGeneticAlgorithm:
    """Tests for GeneticAlgorithm."""

    def test_initialize(self):
        """Initialize seeds population_size random genotypes."""
        ga = GeneticAlgorithm(GeneticConfig(population_size=10, seed=42), gene_count=34)

        population = ga.initialize()

        assert len(population) == 10
        assert all(m.gene_count == 34 for m in population)
        assert ga.state is GenerationState.SEEDED

    def test_state_transitions(self):
        """Seeded -> scored -> advanced."""
        ga = GeneticAlgorithm(GeneticConfig(population_size=6, seed=42), gene_count=8)
        assert ga.state is GenerationState.EMPTY

        population = ga.initialize()
        for i, member in enumerate(population):
            member.distance = float(i)
        ga.mark_scored()
        assert ga.state is GenerationState.SCORED

        ga.advance_generation()
        assert ga.state is GenerationState.ADVANCED
        assert ga.generation == 1

    def test_population_size_preserved(self):
        """Even parent pool keeps the population size."""
        ga = GeneticAlgorithm(GeneticConfig(population_size=20, seed=42), gene_count=34)
        population = ga.initialize()
        for i, member in enumerate(population):
            member.distance = float(i)

        next_population = ga.advance_generation()

        assert len(next_population) == 20
        assert all(m.gene_count == 34 for m in next_population)

    def test_elite_carried_unchanged(self):
        """Top two genotypes survive with identical genes and fitness."""
        ga = GeneticAlgorithm(
            GeneticConfig(population_size=10, mutation_probability=1.0, seed=42),
            gene_count=12,
        )
        population = ga.initialize()
        for i, member in enumerate(population):
            member.distance = float(i * 3)
        best = [population[9], population[8]]
        best_genes = [m.genes.copy() for m in best]

        next_population = ga.advance_generation()

        for member, genes in zip(best, best_genes):
            assert any(m is member for m in next_population)
            np.testing.assert_array_equal(member.genes, genes)
        assert next_population[-2:] == best
        assert best[0].fitness == pytest.approx(27 / 13.5)

    def test_select_elite_breaks_ties_by_order(self):
        """Equal fitness keeps population order."""
        ga = GeneticAlgorithm(GeneticConfig(population_size=4), gene_count=6)
        population = make_population([5, 5, 5, 1])
        FitnessCalculator.normalize(population)

        elite = ga.select_elite(population)

        assert elite == [population[0], population[1]]

    def test_all_zero_distances_still_advance(self):
        """A generation where nobody moved still breeds."""
        ga = GeneticAlgorithm(GeneticConfig(population_size=8, seed=1), gene_count=6)
        ga.initialize()

        next_population = ga.advance_generation()

        assert len(next_population) == 8
        for member in next_population:
            assert np.all(np.isfinite(member.genes))

    def test_uniform_crossover_exchanges_genes(self):
        """Each position: children hold exactly the parents' two values."""
        ga = GeneticAlgorithm(GeneticConfig(seed=42), gene_count=50)
        rng = np.random.default_rng(0)
        parent1 = Genotype.random(50, -3.0, 3.0, rng)
        parent2 = Genotype.random(50, -3.0, 3.0, rng)

        child_a, child_b = ga.uniform_crossover(parent1, parent2)

        for i in range(50):
            assert {child_a.genes[i], child_b.genes[i]} == {parent1.genes[i], parent2.genes[i]}

    def test_crossover_probability_extremes(self):
        """Probability 0 copies parents; probability 1 swaps them."""
        rng = np.random.default_rng(0)
        parent1 = Genotype.random(20, -3.0, 3.0, rng)
        parent2 = Genotype.random(20, -3.0, 3.0, rng)

        keep = GeneticAlgorithm(GeneticConfig(crossover_probability=0.0), gene_count=20)
        a, b = keep.uniform_crossover(parent1, parent2)
        np.testing.assert_array_equal(a.genes, parent1.genes)
        np.testing.assert_array_equal(b.genes, parent2.genes)

        swap = GeneticAlgorithm(GeneticConfig(crossover_probability=1.0), gene_count=20)
        a, b = swap.uniform_crossover(parent1, parent2)
        np.testing.assert_array_equal(a.genes, parent2.genes)
        np.testing.assert_array_equal(b.genes, parent1.genes)

    def test_crossover_children_are_new(self):
        """Children never alias parent gene arrays."""
        ga = GeneticAlgorithm(GeneticConfig(crossover_probability=0.0), gene_count=4)
        parent1 = Genotype.from_genes([1.0, 2.0, 3.0, 4.0])
        parent2 = Genotype.from_genes([5.0, 6.0, 7.0, 8.0])

        child_a, _ = ga.uniform_crossover(parent1, parent2)
        child_a.genes[0] = 100.0

        assert parent1.genes[0] == 1.0

    def test_crossover_length_mismatch_raises(self):
        """Parents must have the same gene count."""
        ga = GeneticAlgorithm(GeneticConfig(), gene_count=4)
        with pytest.raises(ValueError):
            ga.uniform_crossover(Genotype.from_genes([1.0]), Genotype.from_genes([1.0, 2.0]))

    def test_pair_parents_even_pool(self):
        """Even pool is consumed completely in disjoint pairs."""
        ga = GeneticAlgorithm(GeneticConfig(seed=42), gene_count=4)
        parents = make_population([1] * 8, gene_count=4)

        pairs = ga.pair_parents(parents)

        used = [id(p) for pair in pairs for p in pair]
        assert len(pairs) == 4
        assert sorted(used) == sorted(id(p) for p in parents)

    def test_pair_parents_odd_pool(self):
        """Odd pool leaves exactly one parent unpaired."""
        ga = GeneticAlgorithm(GeneticConfig(seed=42), gene_count=4)
        parents = make_population([1] * 7, gene_count=4)

        pairs = ga.pair_parents(parents)

        used = {id(p) for pair in pairs for p in pair}
        assert len(pairs) == 3
        assert len(used) == 6

    def test_odd_pool_shrinks_generation(self):
        """Odd parent pool yields one offspring fewer."""
        ga = GeneticAlgorithm(GeneticConfig(population_size=7, seed=42), gene_count=6)
        population = ga.initialize()
        for i, member in enumerate(population):
            member.distance = float(i + 1)

        next_population = ga.advance_generation()

        assert len(next_population) == 6

    def test_breed_caps_offspring(self):
        """Breeding never exceeds the requested number of children."""
        ga = GeneticAlgorithm(GeneticConfig(seed=42), gene_count=4)
        parents = make_population([1] * 6, gene_count=4)

        assert len(ga.breed(parents, 5)) == 5

    def test_mutate_changes_one_gene(self):
        """Mutation rewrites exactly one position, inside the gene range."""
        ga = GeneticAlgorithm(GeneticConfig(min_gene=5.0, max_gene=6.0, seed=3), gene_count=30)
        genotype = Genotype.from_genes(np.zeros(30))

        index = ga.mutate(genotype)

        changed = np.flatnonzero(genotype.genes != 0.0)
        assert list(changed) == [index]
        assert 5.0 <= genotype.genes[index] <= 6.0

    def test_mutation_rate_converges(self):
        """Fraction of mutated offspring tracks mutation_probability."""
        config = GeneticConfig(
            population_size=102,
            crossover_probability=0.0,
            mutation_probability=0.3,
            min_gene=10.0,
            max_gene=11.0,
            seed=42,
        )
        ga = GeneticAlgorithm(config, gene_count=10)

        mutated = 0
        total = 0
        for _ in range(30):
            # Genes in [0, 1): a mutation always shows up as a value >= 10
            population = [
                Genotype.from_genes(ga.rng.uniform(0.0, 1.0, size=10))
                for _ in range(config.population_size)
            ]
            for i, member in enumerate(population):
                member.distance = float(i + 1)

            offspring = ga.advance_generation(population)[:-config.elite_count]
            for child in offspring:
                changed = int(np.sum(child.genes >= 10.0))
                assert changed <= 1
                mutated += changed
                total += 1

        assert mutated / total == pytest.approx(0.3, abs=0.03)

    def test_elite_never_mutated(self):
        """Elite members keep their genes even at mutation probability 1."""
        config = GeneticConfig(population_size=6, mutation_probability=1.0, seed=9)
        ga = GeneticAlgorithm(config, gene_count=8)
        population = ga.initialize()
        for i, member in enumerate(population):
            member.distance = float(i)
        snapshot = {id(m): m.genes.copy() for m in population}

        next_population = ga.advance_generation()

        for member in next_population[-2:]:
            np.testing.assert_array_equal(member.genes, snapshot[id(member)])

    def test_seed_reproduces_generation(self):
        """Same seed and distances give the same next generation."""
        def run():
            ga = GeneticAlgorithm(GeneticConfig(population_size=10, seed=123), gene_count=12)
            population = ga.initialize()
            for i, member in enumerate(population):
                member.distance = float((i * 7) % 10)
            return [m.genes.copy() for m in ga.advance_generation()]

        for a, b in zip(run(), run()):
            np.testing.assert_array_equal(a, b)

    def test_ask_tell(self):
        """Ask seeds, tell records distances and advances."""
        ga = GeneticAlgorithm(GeneticConfig(population_size=5, seed=42), gene_count=4)

        population = ga.ask()
        assert len(population) == 5

        next_population = ga.tell([1.0, 2.0, 3.0, 4.0, 5.0])

        assert ga.generation == 1
        assert ga.population is next_population
        best, distance = ga.get_best()
        assert distance == 5.0
        np.testing.assert_array_equal(best.genes, population[4].genes)

    def test_get_best_spans_generations(self):
        """A weaker later generation does not replace the best seen so far."""
        ga = GeneticAlgorithm(GeneticConfig(population_size=4, seed=42), gene_count=4)
        first = ga.ask()
        ga.tell([1.0, 9.0, 2.0, 3.0])
        ga.tell([0.5, 0.5, 1.0, 0.5])

        best, distance = ga.get_best()

        assert distance == 9.0
        np.testing.assert_array_equal(best.genes, first[1].genes)

    def test_tell_wrong_length_raises(self):
        """Tell needs one distance per genotype."""
        ga = GeneticAlgorithm(GeneticConfig(population_size=5), gene_count=4)
        ga.ask()
        with pytest.raises(ValueError):
            ga.tell([1.0, 2.0])

    def test_history_and_statistics(self):
        """Each generation leaves a history record."""
        ga = GeneticAlgorithm(GeneticConfig(population_size=4, seed=42), gene_count=4)
        ga.ask()
        ga.tell([2.0, 4.0, 6.0, 8.0])

        entry = ga.history[-1]
        assert entry["generation"] == 1
        assert entry["mean_distance"] == 5.0
        assert entry["max_distance"] == 8.0
        assert entry["best_overall"] == 8.0

        stats = ga.get_statistics()
        assert stats["generation"] == 1
        assert stats["state"] == "advanced"
