"""
neural_car/evolution/genotype.py

Genotype representation for neuroevolution.

A genotype is a flat vector of network weights (the genes) together with
the score of its latest trial. The network driving the car is the
phenotype and is rebuilt from the genes every trial.
"""

from __future__ import annotations
from typing import Any, Dict, Sequence
import numpy as np

WEIGHTS_FIELD = "weights"


class Genotype:
    """
    Fixed-length real-valued gene vector plus trial bookkeeping.

    - distance: raw performance, written by the host once per trial
    - fitness: distance relative to the population mean, written by
      FitnessCalculator once per generation

    The gene count is fixed at construction; operators only overwrite
    genes in place.
    """

    __slots__ = ("genes", "distance", "fitness")

    def __init__(self, genes: Sequence[float]):
        genes = np.array(genes, dtype=np.float64).ravel()
        if genes.size == 0:
            raise ValueError("Genotype needs at least one gene")
        self.genes = genes
        self.distance = 0.0
        self.fitness = 0.0

    @classmethod
    def random(
        cls,
        gene_count: int,
        min_gene: float,
        max_gene: float,
        rng: np.random.Generator,
    ) -> Genotype:
        """Draw every gene independently and uniformly from [min_gene, max_gene]."""
        if gene_count < 1:
            raise ValueError(f"gene_count must be positive, got {gene_count}")
        return cls(rng.uniform(min_gene, max_gene, size=gene_count))

    @classmethod
    def from_genes(cls, genes: Sequence[float]) -> Genotype:
        """Wrap an existing gene vector (loaded weights, offspring)."""
        return cls(genes)

    @property
    def gene_count(self) -> int:
        return len(self.genes)

    def reset(self) -> None:
        """Forget the previous trial. Genes are untouched."""
        self.distance = 0.0
        self.fitness = 0.0

    def copy(self) -> Genotype:
        clone = Genotype(self.genes.copy())
        clone.distance = self.distance
        clone.fitness = self.fitness
        return clone

    def to_dict(self) -> Dict[str, Any]:
        """Serialize genes to the training-data layout."""
        return {WEIGHTS_FIELD: self.genes.tolist()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Genotype:
        """Deserialize genes; distance and fitness start at zero."""
        if WEIGHTS_FIELD not in data:
            raise ValueError(f"Missing '{WEIGHTS_FIELD}' field in genotype data")
        return cls.from_genes(data[WEIGHTS_FIELD])

    def __len__(self) -> int:
        return len(self.genes)

    def __repr__(self) -> str:
        return (
            f"Genotype(genes={len(self.genes)}, "
            f"distance={self.distance:.2f}, fitness={self.fitness:.3f})"
        )
