"""
neural_car/services/trainer.py

Training and examination sessions.

The training session is the host loop around the genetic algorithm:
1. Prepares a generation (reset genotypes, build brains, place cars)
2. Ticks the track until every car has stopped
3. Advances the genetic algorithm
4. Tracks the leader and saves its genes once it has driven enough laps
5. Starts over from scratch when training stagnates

The examination session replays a saved genotype on its own.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from neural_car.core.brain import CarBrain
from neural_car.core.network import required_gene_count, validate_layer_sizes
from neural_car.environments.ring_track import Car, RingTrack, TrackConfig
from neural_car.errors import ConfigurationError
from neural_car.evolution.algorithms import GeneticAlgorithm, GeneticConfig
from neural_car.evolution.genotype import Genotype

from .persistence import DEFAULT_TRAINING_DATA_PATH, TrainingDataStore

logger = logging.getLogger(__name__)

ENV_PREFIX = "NEURAL_CAR_"


@dataclass
class TrainingConfig:
    """Configuration for training and examination sessions."""
    # Network shape: five rays in, [steering, throttle] out
    layer_sizes: list[int] = field(default_factory=lambda: [5, 4, 2])
    activation: str = "softsign"

    # Genetic algorithm
    population_size: int = 20
    min_gene: float = -3.0
    max_gene: float = 3.0
    crossover_probability: float = 0.6
    mutation_probability: float = 0.1
    elite_count: int = 2
    seed: int | None = 42

    # Session control
    generations: int = 100             # Budget for run()
    generations_stop_condition: int = 20  # Restart if nobody finished a lap by then
    minimum_laps: int = 2              # Leader laps needed to count as trained
    training_data_path: str = DEFAULT_TRAINING_DATA_PATH

    # Track
    track: TrackConfig = field(default_factory=TrackConfig)

    def genetic_config(self) -> GeneticConfig:
        return GeneticConfig(
            population_size=self.population_size,
            min_gene=self.min_gene,
            max_gene=self.max_gene,
            crossover_probability=self.crossover_probability,
            mutation_probability=self.mutation_probability,
            elite_count=self.elite_count,
            seed=self.seed,
        )

    @property
    def gene_count(self) -> int:
        return required_gene_count(self.layer_sizes)

    def validate(self) -> None:
        validate_layer_sizes(self.layer_sizes)
        self.genetic_config().validate()
        if self.generations < 0:
            raise ConfigurationError(f"generations must be >= 0, got {self.generations}")
        if self.minimum_laps < 1:
            raise ConfigurationError(f"minimum_laps must be >= 1, got {self.minimum_laps}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrainingConfig:
        data = dict(data)
        track_data = data.pop("track", None) or {}
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(f"Unknown training options: {sorted(unknown)}")
        if not isinstance(track_data, dict):
            raise ConfigurationError("track options must be a mapping")
        unknown = set(track_data) - set(TrackConfig.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(f"Unknown track options: {sorted(unknown)}")
        return cls(track=TrackConfig(**track_data), **data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> TrainingConfig:
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration in {path} must be a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, base: TrainingConfig | None = None) -> TrainingConfig:
        """Override scalar options from NEURAL_CAR_* environment variables."""
        config = base or cls()
        overrides: dict[str, Any] = {}
        for name in cls.__dataclass_fields__:
            raw = os.environ.get(ENV_PREFIX + name.upper())
            if raw is None or name == "track":
                continue
            overrides[name] = yaml.safe_load(raw)
        if not overrides:
            return config
        data = config.to_dict()
        data.update(overrides)
        return cls.from_dict(data)


@dataclass
class TrialSummary:
    """What happened on the track during one trial."""
    generation: int
    steps: int
    distances: list[float]
    laps: list[int]
    leader_distance: float
    leader_laps: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class TrainingSession:
    """
    Host loop that trains car controllers with the genetic algorithm.

    Owns the track and the algorithm. Every trial builds fresh brains
    from the current population; the algorithm only runs once every
    car has stopped and every distance is recorded.
    """

    def __init__(self, config: TrainingConfig):
        config.validate()
        self.config = config
        self.store = TrainingDataStore(config.training_data_path)
        self.track = RingTrack(config.track)

        self.algorithm: GeneticAlgorithm | None = None
        self.generation = 1
        self.restarts = 0
        self.trained = False
        self.saved_path: Path | None = None
        self.history: list[dict[str, Any]] = []

    # ==================== Life cycle ====================

    def start(self) -> list[Genotype]:
        """Seed a new population and put it on the track."""
        # Restarts keep drawing from the same generator
        rng = self.algorithm.rng if self.algorithm is not None else None
        self.algorithm = GeneticAlgorithm(
            self.config.genetic_config(),
            self.config.gene_count,
            rng=rng,
        )
        population = self.algorithm.initialize()
        self.generation = 1
        self.prepare_generation(population)

        logger.info(
            f"Training started: {len(population)} genotypes, "
            f"{self.config.gene_count} genes, layers {self.config.layer_sizes}"
        )
        return population

    def prepare_generation(self, population: list[Genotype]) -> list[Car]:
        """Reset every genotype and give each a fresh brain and car."""
        self.track.clear()
        for i, genotype in enumerate(population):
            genotype.reset()
            brain = CarBrain(
                genotype,
                self.config.layer_sizes,
                activation=self.config.activation,
            )
            self.track.add_car(brain, car_id=f"car_{i}")
        return self.track.cars

    def tick(self) -> None:
        """One host step: every car senses, decides and moves."""
        self.track.step()

    def run_trial(self) -> TrialSummary:
        """Tick until every car stopped (or the step cap) and summarise."""
        steps = self.track.run(self.config.track.max_steps)
        leader = self.track.leader
        summary = TrialSummary(
            generation=self.generation,
            steps=steps,
            distances=self.track.get_distances().tolist(),
            laps=self.track.get_laps().tolist(),
            leader_distance=leader.distance_travelled if leader else 0.0,
            leader_laps=leader.finished_laps if leader else 0,
        )
        self.history.append(summary.to_dict())
        return summary

    def finish_generation(self) -> list[Genotype]:
        """Advance the algorithm and put the next generation on the track."""
        if self.algorithm is None:
            raise RuntimeError("Training session has not been started")

        # Cars still driving at the step cap report what they have so far
        self.track.stop_all()
        self.algorithm.mark_scored()
        population = self.algorithm.advance_generation()

        stats = self.algorithm.history[-1]
        logger.info(
            f"Generation {self.generation} finished: "
            f"best={stats['max_distance']:.2f}, mean={stats['mean_distance']:.2f}, "
            f"best overall={stats['best_overall']:.2f}"
        )

        self.generation += 1
        self.prepare_generation(population)
        return population

    # ==================== Success and stagnation ====================

    def is_trained(self) -> bool:
        """The leader has completed enough laps."""
        leader = self.track.leader
        return leader is not None and leader.finished_laps >= self.config.minimum_laps

    def is_stagnant(self) -> bool:
        """No car has finished a single lap after too many generations."""
        return (
            self.generation > self.config.generations_stop_condition
            and not any(car.finished_laps > 0 for car in self.track.cars)
        )

    def save_leader(self) -> Path:
        leader = self.track.leader
        if leader is None:
            raise RuntimeError("No leader to save")
        self.saved_path = self.store.save(leader.brain.genotype)
        return self.saved_path

    def restart(self) -> list[Genotype]:
        self.restarts += 1
        logger.info(
            f"No lap completed after {self.generation} generations, "
            f"restarting training (restart #{self.restarts})"
        )
        return self.start()

    def run(self, generations: int | None = None) -> bool:
        """
        Train until a leader completes enough laps or the budget runs out.

        Returns:
            True if training data was saved
        """
        budget = self.config.generations if generations is None else generations
        if self.algorithm is None:
            self.start()

        for _ in range(budget):
            summary = self.run_trial()

            if self.is_trained():
                self.trained = True
                self.save_leader()
                logger.info(
                    f"Training succeeded in generation {summary.generation}: "
                    f"leader drove {summary.leader_distance:.2f} "
                    f"over {summary.leader_laps} laps"
                )
                return True

            if self.is_stagnant():
                self.restart()
                continue

            self.finish_generation()

        logger.info(f"Training budget of {budget} generations exhausted")
        return False

    def get_status(self) -> dict[str, Any]:
        status = {
            "generation": self.generation,
            "restarts": self.restarts,
            "trained": self.trained,
            "max_distance": self.track.max_distance,
            "saved_path": str(self.saved_path) if self.saved_path else None,
        }
        if self.algorithm is not None:
            status["algorithm"] = self.algorithm.get_statistics()
        return status


class ExaminationSession:
    """Replays the saved genotype alone on the track."""

    def __init__(self, config: TrainingConfig):
        validate_layer_sizes(config.layer_sizes)
        self.config = config
        self.store = TrainingDataStore(config.training_data_path)
        self.track = RingTrack(config.track)
        self.genotype: Genotype | None = None

    def start(self) -> Car | None:
        """Load the genotype and place its car; None without training data."""
        self.genotype = self.store.load()
        if self.genotype is None:
            return None

        self.genotype.reset()
        self.track.clear()
        brain = CarBrain(
            self.genotype,
            self.config.layer_sizes,
            activation=self.config.activation,
        )
        return self.track.add_car(brain, car_id="examined")

    def run(self) -> TrialSummary | None:
        car = self.start()
        if car is None:
            return None

        steps = self.track.run(self.config.track.max_steps)
        logger.info(
            f"Examination finished after {steps} steps: "
            f"distance={car.distance_travelled:.2f}, laps={car.finished_laps}"
        )
        return TrialSummary(
            generation=0,
            steps=steps,
            distances=[car.distance_travelled],
            laps=[car.finished_laps],
            leader_distance=car.distance_travelled,
            leader_laps=car.finished_laps,
        )


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(
        prog="neural-car",
        description="Evolve feedforward car controllers on a ring track",
    )
    parser.add_argument("--config", default=None, help="YAML configuration file")
    parser.add_argument("--log-level", default="INFO")

    subparsers = parser.add_subparsers(dest="command", required=True)

    train = subparsers.add_parser("train", help="Run a training session")
    train.add_argument("--population-size", type=int, default=None)
    train.add_argument("--generations", type=int, default=None)
    train.add_argument("--seed", type=int, default=None)
    train.add_argument("--output", default=None, help="Where to save training data")

    examine = subparsers.add_parser("examine", help="Replay saved training data")
    examine.add_argument("--input", default=None, help="Training data to replay")

    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Command-line entry point.

    Options are layered: defaults, then the YAML file, then
    NEURAL_CAR_* environment variables, then flags.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = TrainingConfig.from_yaml(args.config) if args.config else TrainingConfig()
        config = TrainingConfig.from_env(config)

        if args.command == "train":
            if args.population_size is not None:
                config.population_size = args.population_size
            if args.generations is not None:
                config.generations = args.generations
            if args.seed is not None:
                config.seed = args.seed
            if args.output is not None:
                config.training_data_path = args.output

            session = TrainingSession(config)
            return 0 if session.run() else 1

        if args.input is not None:
            config.training_data_path = args.input
        summary = ExaminationSession(config).run()
        return 0 if summary is not None else 1

    except ConfigurationError as e:
        parser.error(str(e))


if __name__ == "__main__":
    raise SystemExit(main())
