"""
core/brain.py

Pairing of a genotype with the network built from it.

The brain is what a car consults every tick: sensor readings in,
steering and throttle out. One brain per genotype per trial; a new
trial always gets a freshly built network.
"""

from __future__ import annotations
from typing import Any, Dict, Sequence
import logging

import numpy as np

from neural_car.evolution.genotype import Genotype
from .network import FeedforwardNetwork

logger = logging.getLogger(__name__)


class CarBrain:
    """
    Genotype plus its phenotype.

    The genotype is kept so the host can write the trial's distance
    back onto it once the car stops.
    """

    def __init__(
        self,
        genotype: Genotype,
        layer_sizes: Sequence[int],
        activation: str = "softsign",
    ):
        self.genotype = genotype
        self.network = FeedforwardNetwork.from_genotype(
            layer_sizes, genotype, activation=activation
        )
        self.decisions = 0

    @property
    def layer_sizes(self):
        return self.network.layer_sizes

    def process_inputs(self, sensor_readings: Sequence[float]) -> np.ndarray:
        """
        Map sensor readings to control outputs.

        For the canonical car: five ray distances in,
        [steering, throttle] out.
        """
        self.decisions += 1
        return self.network.evaluate(sensor_readings)

    def get_brain_stats(self) -> Dict[str, Any]:
        return {
            "layer_sizes": list(self.network.layer_sizes),
            "gene_count": self.genotype.gene_count,
            "decisions": self.decisions,
            "distance": self.genotype.distance,
        }

    def __repr__(self) -> str:
        return (
            f"CarBrain(layers={self.network.layer_sizes}, "
            f"distance={self.genotype.distance:.2f})"
        )
