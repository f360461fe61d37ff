"""
core/network.py

Feedforward networks built from a genotype's genes.

The network is a phenotype: it holds no state of its own beyond the weights
it was built from, and it is rebuilt from scratch whenever a genotype is
put on the track. Layer sizes live outside the genotype.

Gene layout, for consecutive layer sizes (n_i, n_next):

    [ neuron_0 fan-out (n_next) | ... | neuron_{n_i-1} fan-out | bias fan-out ]

one block of (n_i + 1) * n_next genes per layer pair, blocks back to back.
"""

from __future__ import annotations
from typing import TYPE_CHECKING, List, Sequence
import numpy as np

from neural_car.errors import ConfigurationError
from .activation import get_activation

if TYPE_CHECKING:
    from neural_car.evolution.genotype import Genotype


def validate_layer_sizes(layer_sizes: Sequence[int]) -> List[int]:
    """Check layer sizes are at least two positive integers."""
    sizes = list(layer_sizes)
    if len(sizes) < 2:
        raise ConfigurationError(
            f"A network needs at least an input and an output layer, got {sizes}"
        )
    for size in sizes:
        if isinstance(size, bool) or not isinstance(size, (int, np.integer)) or size < 1:
            raise ConfigurationError(f"Layer sizes must be positive integers, got {sizes}")
    return [int(size) for size in sizes]


def required_gene_count(layer_sizes: Sequence[int]) -> int:
    """Number of genes a network with these layer sizes consumes."""
    sizes = validate_layer_sizes(layer_sizes)
    return sum(
        (current + 1) * following
        for current, following in zip(sizes[:-1], sizes[1:])
    )


class Neuron:
    """A neuron owns its fan-out weights, one per neuron in the next layer."""

    def __init__(self, weights: Sequence[float]):
        self.weights = np.array(weights, dtype=np.float64)

    def __len__(self) -> int:
        return len(self.weights)

    def __repr__(self) -> str:
        return f"Neuron(weights={len(self.weights)})"


class NeuralLayer:
    """
    Regular neurons plus exactly one bias neuron.

    Turns the outputs of this layer's neurons into the inputs of the next.
    """

    def __init__(
        self,
        neuron_count: int,
        next_layer_size: int,
        genes: Sequence[float],
        activation: str = "softsign",
    ):
        expected = (neuron_count + 1) * next_layer_size
        if len(genes) != expected:
            raise ConfigurationError(
                f"Layer {neuron_count}->{next_layer_size} needs {expected} genes, "
                f"got {len(genes)}"
            )

        self.activation_name = activation
        self._activation = get_activation(activation)

        blocks = [
            genes[i * next_layer_size:(i + 1) * next_layer_size]
            for i in range(neuron_count + 1)
        ]
        self.neurons = [Neuron(block) for block in blocks[:-1]]
        self.bias = Neuron(blocks[-1])

        # Rows are neurons, columns are next-layer targets
        self._weights = np.array(
            [neuron.weights for neuron in self.neurons], dtype=np.float64
        ).reshape(neuron_count, next_layer_size)

    @property
    def neuron_count(self) -> int:
        return len(self.neurons)

    @property
    def next_layer_size(self) -> int:
        return len(self.bias.weights)

    def process(self, inputs: np.ndarray) -> np.ndarray:
        """
        Weighted sum per target, plus bias, squashed.

        Contributions are added neuron by neuron in order, then the bias,
        so results are reproducible bit for bit across BLAS builds.
        """
        total = np.zeros(self.next_layer_size, dtype=np.float64)
        for i, row in enumerate(self._weights):
            total = total + row * inputs[i]
        return self._activation(total + self.bias.weights)

    def __repr__(self) -> str:
        return f"NeuralLayer({self.neuron_count}+bias -> {self.next_layer_size})"


class FeedforwardNetwork:
    """
    Fully connected feedforward network with one bias neuron per layer.

    Evaluation is a pure function of the weights and the inputs: no state
    survives between calls, so networks of different genotypes can be
    evaluated in any order.
    """

    def __init__(
        self,
        layer_sizes: Sequence[int],
        genes: Sequence[float],
        activation: str = "softsign",
    ):
        self.layer_sizes = validate_layer_sizes(layer_sizes)
        genes = np.asarray(genes, dtype=np.float64).ravel()

        expected = required_gene_count(self.layer_sizes)
        if len(genes) != expected:
            raise ConfigurationError(
                f"Layer sizes {self.layer_sizes} need exactly {expected} genes, "
                f"got {len(genes)}"
            )

        self.layers: List[NeuralLayer] = []
        offset = 0
        for current, following in zip(self.layer_sizes[:-1], self.layer_sizes[1:]):
            block_size = (current + 1) * following
            self.layers.append(
                NeuralLayer(
                    current,
                    following,
                    genes[offset:offset + block_size],
                    activation=activation,
                )
            )
            offset += block_size

    @classmethod
    def from_genotype(
        cls,
        layer_sizes: Sequence[int],
        genotype: Genotype,
        activation: str = "softsign",
    ) -> FeedforwardNetwork:
        return cls(layer_sizes, genotype.genes, activation=activation)

    @property
    def input_size(self) -> int:
        return self.layer_sizes[0]

    @property
    def output_size(self) -> int:
        return self.layer_sizes[-1]

    def evaluate(self, inputs: Sequence[float]) -> np.ndarray:
        """
        Propagate inputs through every layer.

        Args:
            inputs: One value per input neuron

        Returns:
            Output vector of length layer_sizes[-1], each value in (-1, 1)
        """
        values = np.asarray(inputs, dtype=np.float64).ravel()
        if len(values) != self.input_size:
            raise ValueError(
                f"Expected {self.input_size} inputs, got {len(values)}"
            )

        for layer in self.layers:
            values = layer.process(values)
        return values

    # Name used by the driving code
    process_inputs = evaluate

    def __repr__(self) -> str:
        return f"FeedforwardNetwork(layers={self.layer_sizes})"
