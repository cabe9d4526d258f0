"""Evaluation reports."""

from .reports import generate_reports, predicted_label

__all__ = ["generate_reports", "predicted_label"]
