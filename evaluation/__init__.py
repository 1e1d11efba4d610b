"""Evaluation tools: windowed metrics, experiment logs and greedy evaluation."""

from .metrics import Metrics, ExperimentLogger, Evaluator

__all__ = ['Metrics', 'ExperimentLogger', 'Evaluator']
