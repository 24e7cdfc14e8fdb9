"""
sigmanet package
~~~~~~~~~~~~~~~~

Dense feed-forward neural network engine with sigmoid activations.
Contains the matrix engine, the network with its training step, JSON
persistence, an SQLite model store, MNIST CSV utilities, a command line
driver and a REST API server.
"""

__version__ = "1.0.0"
