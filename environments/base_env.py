"""Base class for step-driven driving environments."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Tuple

import numpy as np


class BaseDrivingEnvironment(ABC):
    """Episode bookkeeping shared by driving environments.

    Subclasses accept either a discrete action index or a ControlCommand in
    step(), and report 'terminal_cause' and 'distance' in the step info.
    """

    def __init__(self, seed: int = 42, max_steps: int = 1000):
        """Initialize environment.

        Args:
            seed: Random seed for reproducibility
            max_steps: Step count after which an episode times out
        """
        self.max_steps = max_steps
        self.set_seed(seed)
        self.current_step = 0
        self.episode_reward = 0.0

    def set_seed(self, seed: int):
        self.seed_value = seed
        self.np_random = np.random.RandomState(seed)

    @abstractmethod
    def reset(self) -> np.ndarray:
        """Start a new episode and return the initial state vector."""

    @abstractmethod
    def step(self, action: Any) -> Tuple[np.ndarray, float, bool, Dict]:
        """Advance one tick.

        Args:
            action: Action index or ControlCommand

        Returns:
            state, reward, done, info
        """

    @property
    @abstractmethod
    def distance(self) -> float:
        """Forward distance travelled in the current episode."""

    @abstractmethod
    def sensor_inputs(self) -> List[float]:
        """Current ray proximities, for network-driven cars."""

    @property
    @abstractmethod
    def observation_shape(self) -> Tuple[int, ...]:
        """Shape of state vectors."""

    @property
    @abstractmethod
    def action_shape(self) -> Tuple[int, ...]:
        """Number of discrete actions."""

    def run_episode(self, choose_action: Callable[[np.ndarray], Any]) -> Tuple[float, int, Dict]:
        """Drive one episode from reset until it ends.

        Args:
            choose_action: Maps the current state vector to an action

        Returns:
            total reward, steps taken, info of the final step
        """
        state = self.reset()
        total, steps = 0.0, 0
        done = False
        info: Dict[str, Any] = {'terminal_cause': 'none', 'distance': 0.0}
        while not done:
            state, reward, done, info = self.step(choose_action(state))
            total += reward
            steps += 1
        return total, steps, info
