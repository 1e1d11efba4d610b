"""Learning algorithms: tabular Q-learning and a mutation-searched perceptron network."""

from .qlearning import QLearningAgent, RoundingDiscretizer, Experience
from .network import PerceptronNetwork, Level

__all__ = ['QLearningAgent', 'RoundingDiscretizer', 'Experience', 'PerceptronNetwork', 'Level']
