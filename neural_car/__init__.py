"""
Neural-Car: Neuroevolution of Feedforward Driving Controllers

A small engine that evolves the weights of feedforward networks with a
generational genetic algorithm, scored only by how far each controller drives.
"""

__version__ = "0.1.0"
