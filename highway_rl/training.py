"""Training module containing the QLearningTrainer and training orchestration logic."""

import logging
from typing import Any, Dict, Optional

import numpy as np

from algorithms.qlearning import QLearningAgent, RoundingDiscretizer
from environments.highway_env import HighwayEnvironment
from environments.types import TerminalCause
from evaluation.metrics import Evaluator, Metrics
from highway_rl.config import Config
from highway_rl.monitoring import MetricsCollector
from highway_rl.persistence import PersistenceManager

logger = logging.getLogger(__name__)

LATEST_Q_TABLE = 'q_table_latest.json'
BEST_Q_TABLE = 'q_table_best.json'


def build_environment(config: Config) -> HighwayEnvironment:
    """Create the highway environment from the environment/sensor/reward sections."""
    env_config = config.section('environment')
    env_config.update(config.section('sensor'))
    return HighwayEnvironment(reward_config=config.section('reward'), **env_config)


def build_agent(config: Config, env: HighwayEnvironment) -> QLearningAgent:
    """Create a Q-learning agent sized for env."""
    agent_config = config.section('agent')
    discretizer = RoundingDiscretizer(
        sensor_dims=env.sensor.ray_count,
        sensor_decimals=agent_config.pop('sensor_decimals', 1),
        kinematic_decimals=agent_config.pop('kinematic_decimals', 2),
    )
    return QLearningAgent(env.observation_shape[0], env.action_shape[0],
                          discretizer=discretizer, **agent_config)


class QLearningTrainer:
    """Runs the sense -> act -> reward -> learn loop for one agent."""

    def __init__(self, config_path: Optional[str] = None,
                 config: Optional[Config] = None,
                 model_dir: Optional[str] = None,
                 log_dir: Optional[str] = None,
                 resume: bool = True):
        """Initialize the trainer.

        Args:
            config_path: YAML configuration file (default config if None)
            config: Already loaded configuration, used instead of config_path
            model_dir: Directory for saved Q-tables
            log_dir: Directory for training logs
            resume: Restore the latest saved Q-table if one exists
        """
        self.config = config if config is not None else Config(config_path)

        self.env = build_environment(self.config)
        self.agent = build_agent(self.config, self.env)

        self.save_interval = self.config.get('training.save_interval', 50)
        self.learn_every = max(1, int(self.config.get('training.learn_every', 1) or 1))

        self.persistence = PersistenceManager(model_dir or self.config.get('model.save_path', 'models/'))
        self.monitor = MetricsCollector(log_dir or self.config.get('model.log_dir', 'logs/'))
        self.metrics = Metrics()

        self.step_counter = 0
        self.episode_counter = 0
        self.best_distance = 0.0
        self.running = False

        if resume:
            self.load_model('latest')

        logger.info(f"QLearningTrainer initialized - State size: {self.agent.state_size}, "
                    f"Action size: {self.agent.action_size}")

    def train_step(self, state: np.ndarray, action: int, reward: float,
                   next_state: np.ndarray, done: bool) -> Optional[float]:
        """Store one transition and learn from replay."""
        self.agent.store_experience(state, action, reward, next_state, done)

        td_error = None
        if self.step_counter % self.learn_every == 0:
            td_error = self.agent.learn()
            self.metrics.record_td_error(td_error)

        self.step_counter += 1
        self.metrics.record_step()
        if self.save_interval and self.step_counter % self.save_interval == 0:
            self.save_model(LATEST_Q_TABLE)
        return td_error

    def run_episode(self) -> Dict[str, Any]:
        """Run a single episode until collision or timeout."""
        state = self.env.reset()
        episode_reward = 0.0
        td_errors = []
        info = {'terminal_cause': TerminalCause.NONE.value, 'distance': 0.0}

        done = False
        while not done:
            action = self.agent.select_action(state)
            next_state, reward, done, info = self.env.step(action)
            td_error = self.train_step(state, action, reward, next_state, done)
            if td_error is not None:
                td_errors.append(td_error)
            episode_reward += reward
            state = next_state

        self.episode_counter += 1
        cause = info['terminal_cause']
        self.metrics.record_episode(episode_reward, self.env.current_step, cause, info['distance'])
        self.metrics.record_epsilon(self.agent.epsilon)

        if cause == TerminalCause.COLLISION.value:
            self.save_model(LATEST_Q_TABLE)
        if info['distance'] > self.best_distance:
            self.best_distance = info['distance']
            self.save_model(BEST_Q_TABLE)

        result = {
            'episode': self.episode_counter,
            'reward': episode_reward,
            'steps': self.env.current_step,
            'distance': info['distance'],
            'terminal_cause': cause,
            'epsilon': self.agent.epsilon,
            'td_error': float(np.mean(td_errors)) if td_errors else None,
            'q_table_size': len(self.agent.q_table),
            'buffer_size': len(self.agent.memory),
        }
        self.monitor.log_episode(result)
        return result

    def run_continuous(self, max_episodes: Optional[int] = None):
        """Run episodes until stopped or max_episodes is reached."""
        self.running = True
        episode = 0
        logger.info(f"Starting continuous training (max_episodes={max_episodes})")

        try:
            while self.running:
                if max_episodes is not None and episode >= max_episodes:
                    logger.info(f"Reached maximum episodes: {max_episodes}")
                    break
                self.run_episode()
                episode += 1
        except KeyboardInterrupt:
            logger.info("Training interrupted by user")
        finally:
            self.running = False
            self.save_model(LATEST_Q_TABLE)
            logger.info(f"Training completed. Total episodes: {self.episode_counter}")

    def evaluate(self, num_episodes: int = 5) -> Dict[str, float]:
        """Run greedy episodes on a separate environment."""
        evaluator = Evaluator(build_environment(self.config))
        results = evaluator.evaluate(self.agent, num_episodes=num_episodes)
        logger.info(f"Evaluation: mean reward {results['mean_reward']:.2f}, "
                    f"collision rate {results['collision_rate']:.2f}")
        return results

    def stop(self):
        """Stop the training loop."""
        self.running = False

    def save_model(self, filename: Optional[str] = None) -> str:
        """Save the Q-table and training metadata."""
        metadata = {
            'episode_count': self.episode_counter,
            'epsilon': self.agent.epsilon,
            'mean_reward': self.metrics.mean_reward or 0.0,
        }
        # Only the best snapshot competes when resolving 'best'
        if filename == BEST_Q_TABLE:
            metadata['best_distance'] = self.best_distance
        filename = self.persistence.save_q_table(self.agent.q_table_to_dict(), metadata, filename)
        self.monitor.log_step({'saved': filename, 'step': self.step_counter})
        return filename

    def load_model(self, identifier: str = 'latest') -> bool:
        """Restore a saved Q-table; an empty table is kept if nothing usable exists."""
        payload = self.persistence.load_q_table(identifier)
        if payload is None:
            logger.info(f"No usable Q-table for {identifier!r}, starting with an empty table")
            return False

        rows = self.agent.load_q_table(payload['q_table'])
        epsilon = payload.get('epsilon')
        if isinstance(epsilon, (int, float)) and 0.0 <= epsilon <= 1.0:
            self.agent.epsilon = float(epsilon)
        logger.info(f"Loaded {rows} Q-table rows from {identifier!r}")
        return True

    def get_training_stats(self) -> Dict[str, Any]:
        """Get current training statistics."""
        summary = self.metrics.get_summary()
        summary.update({
            'step': self.step_counter,
            'epsilon': float(self.agent.epsilon),
            'best_distance': float(self.best_distance),
            'buffer_size': len(self.agent.memory),
            'q_table_size': len(self.agent.q_table),
            'running': self.running,
        })
        return summary

    def close(self):
        self.monitor.close()
