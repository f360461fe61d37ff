"""
neural_car/errors.py

Exceptions shared across the package.
"""


class ConfigurationError(ValueError):
    """
    Raised when a network or evolution setup cannot be honoured.

    Gene vectors that do not match their layer sizes, populations too small
    for elitism, probabilities outside [0, 1]. Detected before any
    computation starts.
    """
