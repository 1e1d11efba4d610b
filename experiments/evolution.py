"""Mutation-based search over perceptron drivers."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from algorithms.network import PerceptronNetwork
from environments.highway_env import HighwayEnvironment
from environments.types import ControlCommand
from evaluation.metrics import ExperimentLogger

logger = logging.getLogger(__name__)


class EvolutionExperiment:
    """Keeps the fittest of a mutated population each generation.

    Candidate 0 of every generation is an unmutated copy of the current
    best, so the best fitness never decreases on a deterministic road.
    """

    def __init__(self,
                 population_size: int = 20,
                 hidden_layers: Sequence[int] = (6,),
                 mutation_amount: float = 0.1,
                 max_steps: int = 1000,
                 env_config: Optional[Dict[str, Any]] = None,
                 best_network: Optional[Dict[str, Any]] = None,
                 experiment_name: str = 'evolution',
                 log_dir: Optional[str] = 'experiment_logs',
                 seed: int = 42):
        """Initialize experiment.

        Args:
            population_size: Candidates evaluated per generation
            hidden_layers: Hidden layer widths between sensor inputs and the 4 controls
            mutation_amount: How far mutated candidates move toward random parameters
            max_steps: Step limit per evaluation drive
            env_config: HighwayEnvironment keyword overrides
            best_network: Stored network dict to resume from
            experiment_name: Name of experiment
            log_dir: Directory for ExperimentLogger output (None disables it)
            seed: Random seed
        """
        if population_size < 1:
            raise ValueError(f"population_size must be positive, got {population_size}")
        self.population_size = population_size
        self.mutation_amount = mutation_amount
        self.rng = np.random.RandomState(seed)

        self.env_kwargs = dict(env_config or {}, seed=seed, max_steps=max_steps)
        self.env = self.make_env()
        self.layer_sizes = [self.env.sensor.ray_count, *hidden_layers, 4]
        self.best = PerceptronNetwork.from_dict(best_network, self.layer_sizes, seed=seed)
        self.best_fitness = -float('inf')
        self.generation = 0
        self.history: List[Dict[str, Any]] = []

        self.logger = ExperimentLogger(experiment_name, log_dir) if log_dir else None
        if self.logger is not None:
            self.logger.log_config({
                'population_size': population_size,
                'layer_sizes': self.layer_sizes,
                'mutation_amount': mutation_amount,
                'max_steps': max_steps,
                'env_config': env_config or {},
                'seed': seed,
                'timestamp': datetime.now().isoformat(),
            })

    def make_env(self) -> HighwayEnvironment:
        return HighwayEnvironment(**self.env_kwargs)

    def evaluate(self, network: PerceptronNetwork) -> float:
        """Drive one episode with network on a fresh environment; fitness is forward distance."""
        env = self.make_env()
        _, _, info = env.run_episode(
            lambda _: ControlCommand.from_vector(network.feed_forward(env.sensor_inputs())))
        return float(info['distance'])

    def spawn(self) -> List[PerceptronNetwork]:
        """Deep copies of the best network, all but the first mutated."""
        population = []
        for i in range(self.population_size):
            candidate = self.best.copy(seed=int(self.rng.randint(2 ** 31 - 1)))
            if i > 0:
                candidate.mutate(self.mutation_amount)
            population.append(candidate)
        return population

    def run_generation(self) -> Dict[str, Any]:
        population = self.spawn()
        fitnesses = [self.evaluate(candidate) for candidate in population]
        best_index = int(np.argmax(fitnesses))

        improved = fitnesses[best_index] > self.best_fitness
        if improved:
            self.best = population[best_index]
            self.best_fitness = fitnesses[best_index]

        self.generation += 1
        result = {
            'generation': self.generation,
            'best_fitness': self.best_fitness,
            'mean_fitness': float(np.mean(fitnesses)),
            'improved': bool(improved),
        }
        self.history.append(result)
        logger.info(f"Generation {self.generation}: Best={self.best_fitness:.1f}, "
                    f"Mean={result['mean_fitness']:.1f}")
        return result

    def run(self, generations: int = 10) -> Dict[str, Any]:
        """Run several generations and record the best network."""
        for _ in range(generations):
            self.run_generation()

        if self.logger is not None:
            self.logger.log_history(self.history)
            self.logger.save_network(self.best.to_dict(), 'best_network')

        return {
            'best_fitness': self.best_fitness,
            'history': list(self.history),
            'network': self.best.to_dict(),
            'log_dir': self.logger.get_log_dir() if self.logger is not None else None,
        }
