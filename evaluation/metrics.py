"""Episode statistics, experiment logs and greedy evaluation for highway agents."""

import json
import os
from collections import Counter, deque
from datetime import datetime
from typing import Any, Dict, List, Optional

import numpy as np


class Metrics:
    """Moving-window driving statistics plus lifetime terminal-cause counts."""

    def __init__(self, window_size: int = 100):
        """Initialize metrics tracker.

        Args:
            window_size: Number of recent episodes/learning steps kept
        """
        self.window_size = window_size
        self.rewards = deque(maxlen=window_size)
        self.lengths = deque(maxlen=window_size)
        self.distances = deque(maxlen=window_size)
        self.td_errors = deque(maxlen=window_size)
        self.epsilons = deque(maxlen=window_size)
        self.terminal_causes = Counter()

        self.timestep = 0
        self.episode = 0
        self.best_distance = 0.0

    def record_episode(self, reward: float, length: int,
                       terminal_cause: str = 'none', distance: float = 0.0):
        self.rewards.append(reward)
        self.lengths.append(length)
        self.distances.append(distance)
        self.terminal_causes[terminal_cause] += 1
        self.best_distance = max(self.best_distance, distance)
        self.episode += 1

    def record_td_error(self, td_error: Optional[float]):
        """Record a TD error; skipped learning steps report None."""
        if td_error is not None:
            self.td_errors.append(td_error)

    def record_epsilon(self, epsilon: float):
        self.epsilons.append(epsilon)

    def record_step(self):
        self.timestep += 1

    @staticmethod
    def _mean(values) -> Optional[float]:
        return float(np.mean(values)) if values else None

    @property
    def mean_reward(self) -> Optional[float]:
        return self._mean(self.rewards)

    @property
    def mean_distance(self) -> Optional[float]:
        return self._mean(self.distances)

    @property
    def mean_td_error(self) -> Optional[float]:
        return self._mean(self.td_errors)

    @property
    def collision_rate(self) -> Optional[float]:
        """Share of all recorded episodes that ended in a collision."""
        if not self.episode:
            return None
        return self.terminal_causes['collision'] / self.episode

    def get_summary(self) -> Dict[str, Any]:
        return {
            'timestep': self.timestep,
            'episode': self.episode,
            'mean_reward': self.mean_reward,
            'max_reward': float(np.max(self.rewards)) if self.rewards else None,
            'mean_length': self._mean(self.lengths),
            'mean_distance': self.mean_distance,
            'best_distance': self.best_distance,
            'mean_td_error': self.mean_td_error,
            'collisions': self.terminal_causes['collision'],
            'timeouts': self.terminal_causes['timeout'],
            'collision_rate': self.collision_rate,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rewards': list(self.rewards),
            'lengths': list(self.lengths),
            'distances': list(self.distances),
            'td_errors': list(self.td_errors),
            'epsilons': list(self.epsilons),
            'terminal_causes': dict(self.terminal_causes),
        }


class ExperimentLogger:
    """Writes one experiment's config, history and networks under a timestamped directory."""

    def __init__(self, experiment_name: str, log_dir: str = 'experiment_logs'):
        self.experiment_name = experiment_name
        self.timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        self.exp_dir = os.path.join(log_dir, f'{experiment_name}_{self.timestamp}')
        self.checkpoint_dir = os.path.join(self.exp_dir, 'checkpoints')
        os.makedirs(self.checkpoint_dir, exist_ok=True)

    def _write(self, path: str, data: Any, indent: Optional[int] = 2) -> str:
        with open(path, 'w') as f:
            json.dump(data, f, indent=indent)
        return path

    def log_config(self, config: Dict[str, Any]) -> str:
        return self._write(os.path.join(self.exp_dir, 'config.json'), config)

    def log_history(self, history: List[Dict[str, Any]]) -> str:
        """Write per-generation (or per-episode) records to metrics.json."""
        return self._write(os.path.join(self.exp_dir, 'metrics.json'), {'history': history})

    def save_network(self, network: Dict[str, Any], name: str) -> str:
        """Save a network dict as checkpoints/<name>.json."""
        return self._write(os.path.join(self.checkpoint_dir, f'{name}.json'), network, indent=None)

    def get_log_dir(self) -> str:
        return self.exp_dir


class Evaluator:
    """Runs greedy episodes (no exploration) and reports driving outcomes."""

    def __init__(self, env: Any, metrics: Optional[Metrics] = None):
        """Initialize evaluator.

        Args:
            env: BaseDrivingEnvironment to drive in
            metrics: Tracker that also receives the evaluation episodes
        """
        self.env = env
        self.metrics = metrics

    def evaluate(self, agent: Any, num_episodes: int = 10) -> Dict[str, float]:
        """Drive num_episodes with agent.select_action(state, training=False).

        Returns:
            Reward, length and distance statistics plus collision/timeout rates
        """
        rewards, lengths, distances = [], [], []
        causes = Counter()

        for _ in range(num_episodes):
            total, steps, info = self.env.run_episode(
                lambda state: agent.select_action(state, training=False))
            cause = info.get('terminal_cause', 'none')
            distance = float(info.get('distance', 0.0))
            rewards.append(total)
            lengths.append(steps)
            distances.append(distance)
            causes[cause] += 1
            if self.metrics is not None:
                self.metrics.record_episode(total, steps, cause, distance)

        return {
            'mean_reward': float(np.mean(rewards)),
            'std_reward': float(np.std(rewards)),
            'min_reward': float(np.min(rewards)),
            'max_reward': float(np.max(rewards)),
            'mean_length': float(np.mean(lengths)),
            'mean_distance': float(np.mean(distances)),
            'max_distance': float(np.max(distances)),
            'collision_rate': causes['collision'] / num_episodes,
            'timeout_rate': causes['timeout'] / num_episodes,
        }
