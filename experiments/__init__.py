"""Experiment pipelines."""

from .evolution import EvolutionExperiment

__all__ = ['EvolutionExperiment']
