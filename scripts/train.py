#!/usr/bin/env python3
"""CLI entry point for highway training."""

import argparse
import logging
import os
import sys

# Add parent directory to path for imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from experiments.evolution import EvolutionExperiment
from highway_rl.config import Config
from highway_rl.monitoring import MetricsCollector
from highway_rl.persistence import PersistenceManager
from highway_rl.training import QLearningTrainer


def run_qlearning(args, config: Config):
    trainer = QLearningTrainer(config=config, resume=args.load_model is None)
    if args.load_model:
        print(f"Loading Q-table from: {args.load_model}")
        if not trainer.load_model(args.load_model):
            print("Failed to load Q-table, starting fresh")

    print("\nConfiguration Summary:")
    print(f"  State size: {trainer.agent.state_size}, Action size: {trainer.agent.action_size}")
    print(f"  Batch size: {trainer.agent.batch_size}")
    print(f"  Replay capacity: {trainer.agent.capacity} (trim to {trainer.agent.trim_to})")
    print(f"  Initial epsilon: {trainer.agent.epsilon}")
    print(f"  Model save path: {trainer.persistence.model_dir}")
    print("\nStarting training...")

    try:
        trainer.run_continuous(max_episodes=args.episodes)
    finally:
        stats = trainer.get_training_stats()
        print(f"Training completed. Episodes: {trainer.episode_counter}, Steps: {trainer.step_counter}, "
              f"Collisions: {stats['collisions']}, Timeouts: {stats['timeouts']}")
        if args.evaluate:
            results = trainer.evaluate(num_episodes=args.evaluate)
            print(f"Greedy evaluation: mean reward {results['mean_reward']:.2f}, "
                  f"collision rate {results['collision_rate']:.2f}")
        trainer.close()


def run_evolution(args, config: Config):
    persistence = PersistenceManager(config.get('model.save_path', 'models/'))
    monitor = MetricsCollector(config.get('model.log_dir', 'logs/'), logger_name='highway_rl.evolution')
    evolution_config = config.section('evolution')

    env_config = config.section('environment')
    env_config.update(config.section('sensor'))
    env_config.pop('max_steps', None)
    env_config.pop('seed', None)

    experiment = EvolutionExperiment(
        population_size=evolution_config.get('population_size', 20),
        hidden_layers=evolution_config.get('hidden_layers', [6]),
        mutation_amount=evolution_config.get('mutation_amount', 0.1),
        max_steps=evolution_config.get('max_steps', 1000),
        env_config=env_config,
        best_network=persistence.load_network(args.load_model or 'best'),
        seed=evolution_config.get('seed', 42),
    )

    generations = args.episodes or 10
    print(f"Evolving {experiment.population_size} drivers for {generations} generations")
    for _ in range(generations):
        result = experiment.run_generation()
        monitor.log_generation(result)
        print(f"Generation {result['generation']}: best distance {result['best_fitness']:.1f}")

    filename = persistence.save_network(experiment.best.to_dict(), {
        'episode_count': experiment.generation,
        'best_distance': experiment.best_fitness,
    })
    print(f"Best network saved to: {os.path.join(persistence.model_dir, filename)}")
    monitor.close()


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(description='Highway driving training')
    parser.add_argument('--config', type=str, default=None,
                        help='Path to configuration file (default: config/default.yaml)')
    parser.add_argument('--mode', choices=['qlearning', 'evolve'], default='qlearning',
                        help='Train the Q-learning agent or evolve a perceptron driver')
    parser.add_argument('--episodes', type=int, default=None,
                        help='Episodes (qlearning) or generations (evolve) to run')
    parser.add_argument('--load-model', type=str, default=None,
                        help='Saved model file to start from')
    parser.add_argument('--evaluate', type=int, default=0,
                        help='Greedy evaluation episodes to run after Q-learning')
    parser.add_argument('--list-models', action='store_true',
                        help='List all available saved models')

    args = parser.parse_args()
    logging.basicConfig(level=logging.WARNING)

    config = Config(args.config)

    if args.list_models:
        persistence = PersistenceManager(config.get('model.save_path', 'models/'))
        print("Available models:")
        for model in persistence.list_models():
            print(f"  {model['filename']} ({model['kind']}, episode {model['episode_count']}, "
                  f"best distance {model['best_distance']:.1f})")
        return

    try:
        if args.mode == 'evolve':
            run_evolution(args, config)
        else:
            run_qlearning(args, config)
    except KeyboardInterrupt:
        print("\nTraining interrupted by user")


if __name__ == '__main__':
    main()
