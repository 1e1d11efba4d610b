import csv
import json
import logging
from collections import Counter, deque
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

EPISODE_FIELDS = [
    'episode', 'reward', 'steps', 'distance', 'terminal_cause', 'epsilon',
    'td_error', 'q_table_size', 'buffer_size', 'timestamp', 'uptime_seconds',
]


def _attach_file_handler(logger: logging.Logger, log_file: Path) -> None:
    """Replace logger's handlers with one rotating file (10 MB, 5 backups)."""
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    logger.addHandler(handler)


class MetricsCollector:
    """Structured monitoring for driving episodes and evolution generations.

    Every record is appended to metrics.jsonl tagged with its kind; episode
    records also go to metrics.csv and a summary line to training.log.
    """

    def __init__(self, log_dir: str = 'logs', logger_name: str = 'highway_rl.training',
                 max_history: int = 1000):
        """Initialize metrics collector.

        Args:
            log_dir: Directory to store log files
            logger_name: Logger that receives the summary lines
            max_history: Number of recent episodes kept in memory
        """
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.jsonl_file = self.log_dir / 'metrics.jsonl'
        self.csv_file = self.log_dir / 'metrics.csv'

        self.logger = logging.getLogger(logger_name)
        self.logger.setLevel(logging.INFO)
        _attach_file_handler(self.logger, self.log_dir / 'training.log')

        self.episode_metrics = deque(maxlen=max_history)
        self.startup_time = datetime.now()

    def _uptime(self) -> float:
        return (datetime.now() - self.startup_time).total_seconds()

    def log_episode(self, episode_data: Dict[str, Any]) -> None:
        """Log one finished episode (keys as in EPISODE_FIELDS)."""
        record = dict(episode_data, timestamp=datetime.now().isoformat(),
                      uptime_seconds=self._uptime())
        self.episode_metrics.append(record)

        td_error = record.get('td_error')
        self.logger.info(
            f"Episode {record.get('episode', 'N/A')}: "
            f"Reward={record.get('reward', 0.0):.2f}, "
            f"Steps={record.get('steps', 0)}, "
            f"Distance={record.get('distance', 0.0):.1f}, "
            f"End={record.get('terminal_cause', 'none')}, "
            f"Epsilon={record.get('epsilon', 0.0):.4f}, "
            f"TD Error={'n/a' if td_error is None else format(td_error, '.4f')}, "
            f"Q-Table={record.get('q_table_size', 0)}"
        )
        self._append_jsonl('episode', record)
        self._append_csv(record)

    def log_generation(self, generation_data: Dict[str, Any]) -> None:
        """Log the outcome of one evolutionary generation."""
        self.logger.info(
            f"Generation {generation_data.get('generation', 'N/A')}: "
            f"Best={generation_data.get('best_fitness', 0.0):.1f}, "
            f"Mean={generation_data.get('mean_fitness', 0.0):.1f}, "
            f"Improved={generation_data.get('improved', False)}"
        )
        self._append_jsonl('generation', dict(generation_data, timestamp=datetime.now().isoformat()))

    def log_step(self, step_data: Dict[str, Any]) -> None:
        self.logger.debug(f"Training step: {step_data}")

    def _append_jsonl(self, kind: str, data: Dict[str, Any]) -> None:
        try:
            with open(self.jsonl_file, 'a') as f:
                f.write(json.dumps(dict(data, kind=kind)) + '\n')
        except IOError as e:
            self.logger.error(f"Failed to write JSONL: {e}")

    def _append_csv(self, data: Dict[str, Any]) -> None:
        try:
            new_file = not self.csv_file.exists()
            with open(self.csv_file, 'a', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=EPISODE_FIELDS, extrasaction='ignore')
                if new_file:
                    writer.writeheader()
                writer.writerow({k: data.get(k, '') for k in EPISODE_FIELDS})
        except IOError as e:
            self.logger.error(f"Failed to write CSV: {e}")

    def get_metrics_history(self) -> List[Dict[str, Any]]:
        return list(self.episode_metrics)

    def get_latest_metrics(self) -> Optional[Dict[str, Any]]:
        return dict(self.episode_metrics[-1]) if self.episode_metrics else None

    def get_aggregated_stats(self) -> Dict[str, Any]:
        """Summarize the episodes in memory; collisions and timeouts are counted separately."""
        if not self.episode_metrics:
            return {}

        episodes = list(self.episode_metrics)
        rewards = [m.get('reward', 0.0) for m in episodes]
        distances = [m.get('distance', 0.0) for m in episodes]
        causes = Counter(m.get('terminal_cause', 'none') for m in episodes)

        return {
            'total_episodes': len(episodes),
            'avg_reward': sum(rewards) / len(episodes),
            'max_reward': max(rewards),
            'min_reward': min(rewards),
            'avg_distance': sum(distances) / len(episodes),
            'max_distance': max(distances),
            'collisions': causes['collision'],
            'timeouts': causes['timeout'],
            'total_steps': sum(m.get('steps', 0) for m in episodes),
            'latest_epsilon': episodes[-1].get('epsilon', 0.0),
            'uptime_seconds': self._uptime(),
        }

    def load_metrics_from_disk(self) -> None:
        """Reload episode records written by earlier runs."""
        if not self.jsonl_file.exists():
            return
        try:
            with open(self.jsonl_file, 'r') as f:
                records = [json.loads(line) for line in f if line.strip()]
        except (IOError, json.JSONDecodeError) as e:
            self.logger.error(f"Failed to load metrics from disk: {e}")
            return

        self.episode_metrics.extend(r for r in records if r.get('kind') == 'episode')
        self.logger.info(f"Loaded {len(self.episode_metrics)} metrics from disk")

    def close(self) -> None:
        """Detach and close file handlers."""
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()
