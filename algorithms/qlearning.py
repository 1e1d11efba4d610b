"""Q-Learning algorithm for discretized continuous state spaces."""

import logging
import math
from collections import defaultdict
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)


class Experience(NamedTuple):
    state: np.ndarray
    action: int
    reward: float
    next_state: np.ndarray
    done: bool


class RoundingDiscretizer:
    """Maps a state vector to a table key by per-coordinate rounding.

    The first sensor_dims coordinates are rounded to sensor_decimals, the
    remaining (kinematic) ones to kinematic_decimals.
    """

    def __init__(self, sensor_dims: int = 5, sensor_decimals: int = 1,
                 kinematic_decimals: int = 2):
        self.sensor_dims = sensor_dims
        self.sensor_decimals = sensor_decimals
        self.kinematic_decimals = kinematic_decimals

    def key(self, state: Sequence[float]) -> str:
        parts = []
        for i, value in enumerate(state):
            decimals = self.sensor_decimals if i < self.sensor_dims else self.kinematic_decimals
            # + 0.0 folds -0.0 into 0.0
            parts.append(f"{round(float(value), decimals) + 0.0:.{decimals}f}")
        return ','.join(parts)


def fit_vector(values: Any, size: int, name: str = 'state') -> np.ndarray:
    """Coerce values into a finite float vector of exactly size entries."""
    try:
        vector = np.asarray(values, dtype=np.float64).ravel()
    except (TypeError, ValueError):
        vector = np.array([_to_float(v) for v in _as_list(values)], dtype=np.float64)
    if vector.shape[0] != size:
        logger.warning(f"{name} length {vector.shape[0]} != {size}, padding/truncating")
        fitted = np.zeros(size)
        n = min(size, vector.shape[0])
        fitted[:n] = vector[:n]
        vector = fitted
    return np.where(np.isfinite(vector), vector, 0.0)


def _as_list(values: Any) -> List[Any]:
    if values is None:
        return []
    try:
        return list(values)
    except TypeError:
        return [values]


def _to_float(value: Any) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


class QLearningAgent:
    """Tabular Q-Learning agent with epsilon-greedy policy and experience replay."""

    def __init__(self,
                 state_size: int,
                 action_size: int,
                 batch_size: int = 32,
                 gamma: float = 0.95,
                 epsilon: float = 1.0,
                 epsilon_min: float = 0.05,
                 epsilon_decay: float = 0.999,
                 learning_rate: float = 0.005,
                 capacity: int = 10000,
                 trim_to: int = 8000,
                 min_learn_size: int = 100,
                 decay_after: int = 500,
                 discretizer: Optional[Any] = None,
                 seed: Optional[int] = None):
        """Initialize Q-Learning agent.

        Args:
            state_size: Length of every state vector
            action_size: Number of discrete actions
            batch_size: Experiences sampled per learning step
            gamma: Discount factor
            epsilon: Initial exploration rate
            epsilon_min: Exploration floor
            epsilon_decay: Multiplicative decay per learning step
            learning_rate: Fixed TD step size
            capacity: Replay buffer length that triggers eviction
            trim_to: Number of most recent experiences kept after eviction
            min_learn_size: Upper bound on the minimum buffer size for learning
            decay_after: Buffer size above which epsilon starts decaying
            discretizer: Object with key(state) -> hashable; rounding by default
            seed: Random seed
        """
        self.state_size = state_size
        self.action_size = action_size
        self.batch_size = batch_size
        self.gamma = gamma
        self.epsilon = epsilon
        self.epsilon_min = epsilon_min
        self.epsilon_decay = epsilon_decay
        self.learning_rate = learning_rate
        self.capacity = max(1, int(capacity))
        self.trim_to = max(1, min(int(trim_to), self.capacity))
        self.min_learn_size = min_learn_size
        self.decay_after = decay_after
        self.discretizer = discretizer if discretizer is not None else RoundingDiscretizer()

        self.rng = np.random.RandomState(seed)

        # Q-table: state key -> action values
        self.q_table: Dict[str, np.ndarray] = defaultdict(lambda: np.zeros(action_size))
        self.memory: List[Experience] = []
        self.learn_steps = 0

    def state_key(self, state: Any) -> str:
        return self.discretizer.key(fit_vector(state, self.state_size))

    def select_action(self, state: Any, training: bool = True) -> int:
        """Select action using epsilon-greedy policy.

        Args:
            state: Current state vector
            training: Whether exploration is enabled

        Returns:
            Selected action index
        """
        if training and self.rng.random_sample() < self.epsilon:
            return int(self.rng.randint(self.action_size))

        # Unseen states are not inserted into the table
        q_values = self.q_table.get(self.state_key(state))
        if q_values is None:
            q_values = np.zeros(self.action_size)
        best = np.flatnonzero(q_values == q_values.max())
        return int(self.rng.choice(best))

    def store_experience(self, state: Any, action: Any, reward: Any,
                         next_state: Any, done: Any) -> None:
        """Append a transition, evicting the oldest ones past capacity."""
        self.memory.append(Experience(
            fit_vector(state, self.state_size),
            self._valid_action(action),
            _to_float(reward),
            fit_vector(next_state, self.state_size, name='next_state'),
            bool(done),
        ))
        if len(self.memory) > self.capacity:
            del self.memory[:len(self.memory) - self.trim_to]

    def learn(self, batch_size: Optional[int] = None) -> Optional[float]:
        """Update Q-values from a batch sampled with replacement.

        Args:
            batch_size: Override for the configured batch size

        Returns:
            Mean absolute TD error of the batch, or None if skipped
        """
        batch_size = self.batch_size if batch_size is None else int(batch_size)
        if batch_size < 1 or len(self.memory) < min(batch_size, self.min_learn_size):
            return None

        indices = self.rng.randint(0, len(self.memory), size=batch_size)
        td_errors = []
        for i in indices:
            experience = self.memory[i]
            key = self.discretizer.key(experience.state)
            next_key = self.discretizer.key(experience.next_state)
            row = self.q_table[key]
            next_row = self.q_table[next_key]

            target = experience.reward
            if not experience.done:
                target += self.gamma * float(np.max(next_row))
            td_error = target - row[experience.action]
            row[experience.action] += self.learning_rate * td_error
            td_errors.append(abs(td_error))

        self.learn_steps += 1
        if len(self.memory) > self.decay_after and self.epsilon > self.epsilon_min:
            self.epsilon = max(self.epsilon_min, self.epsilon * self.epsilon_decay)

        return float(np.mean(td_errors))

    def get_q_values(self, state: Any) -> np.ndarray:
        """Get a copy of the Q-values for a state (zeros if unseen)."""
        q_values = self.q_table.get(self.state_key(state))
        if q_values is None:
            return np.zeros(self.action_size)
        return q_values.copy()

    def q_table_to_dict(self) -> Dict[str, List[float]]:
        return {key: [float(v) for v in row] for key, row in self.q_table.items()}

    def load_q_table(self, data: Any) -> int:
        """Replace the Q-table from a key -> values mapping.

        Malformed rows are repaired or skipped; a blob that is not a mapping
        leaves an empty table.

        Returns:
            Number of rows loaded
        """
        self.q_table.clear()
        if not isinstance(data, dict):
            if data is not None:
                logger.warning(f"Ignoring Q-table of type {type(data).__name__}")
            return 0

        for key, values in data.items():
            if not isinstance(values, (list, tuple)):
                logger.warning(f"Skipping Q-table row {key!r}: not a list")
                continue
            self.q_table[str(key)] = fit_vector(values, self.action_size, name=f"row {key!r}")
        return len(self.q_table)

    def reset(self):
        """Reset the agent."""
        self.q_table.clear()
        self.memory.clear()
        self.learn_steps = 0
        self.epsilon = 1.0

    def _valid_action(self, action: Any) -> int:
        value = _to_float(action)
        index = int(value)
        if index < 0 or index >= self.action_size or index != value:
            clamped = min(max(index, 0), self.action_size - 1)
            logger.warning(f"Action {action!r} out of range, using {clamped}")
            return clamped
        return index
