"""
Core components of the neural-car system.

- network: Feedforward networks built from genes
- activation: Squashing functions
- brain: Genotype + network, the per-tick controller
"""

from .activation import ACTIVATIONS, softsign
from .network import FeedforwardNetwork, NeuralLayer, Neuron, required_gene_count
from .brain import CarBrain

__all__ = [
    "ACTIVATIONS",
    "softsign",
    "FeedforwardNetwork",
    "NeuralLayer",
    "Neuron",
    "required_gene_count",
    "CarBrain",
]
