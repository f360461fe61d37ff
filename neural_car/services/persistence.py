"""
neural_car/services/persistence.py

Training data persistence.

A trained controller is stored as nothing more than its gene vector:

    {"weights": [0.12, -2.7, ...]}

Layer sizes are configuration, not data, and are never written.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from neural_car.evolution.genotype import WEIGHTS_FIELD, Genotype

logger = logging.getLogger(__name__)

DEFAULT_TRAINING_DATA_PATH = "training_data/TrainingData.json"


def genotype_to_json(genotype: Genotype) -> str:
    """Serialize a genotype's genes."""
    return json.dumps(genotype.to_dict())


def genotype_from_json(payload: str) -> Genotype:
    """Rebuild a genotype from serialized genes; distance and fitness start at 0."""
    try:
        data: Any = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ValueError(f"Training data is not valid JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get(WEIGHTS_FIELD), list):
        raise ValueError(f"Training data must be an object with a '{WEIGHTS_FIELD}' list")
    return Genotype.from_dict(data)


class TrainingDataStore:
    """
    Reads and writes the trained genotype at a fixed path.

    Saving overwrites whatever was there; the latest successful
    training run wins.
    """

    def __init__(self, path: str | Path = DEFAULT_TRAINING_DATA_PATH):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, genotype: Genotype) -> Path:
        """Write the genotype's genes, creating parent directories."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            f.write(genotype_to_json(genotype))

        logger.info(f"Training data saved to {self.path} ({genotype.gene_count} weights)")
        return self.path

    def load(self) -> Genotype | None:
        """Read the stored genotype, or None if nothing has been saved yet."""
        if not self.exists():
            logger.error(f"Cannot read training data, file does not exist: {self.path}")
            return None

        with open(self.path) as f:
            genotype = genotype_from_json(f.read())

        logger.info(f"Training data loaded from {self.path} ({genotype.gene_count} weights)")
        return genotype

    def __repr__(self) -> str:
        return f"TrainingDataStore(path={self.path})"
