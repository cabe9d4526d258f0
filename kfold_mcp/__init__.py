"""K-fold cross-validation harness for remote and local model services."""

__version__ = "0.1.0"
