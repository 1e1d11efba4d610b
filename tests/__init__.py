"""
Test suite for the highway driving agents.

This package contains tests for:
- Geometry kernel and ray-cast sensor
- Perceptron network forward pass, mutation and serialization
- Q-learning agent (action selection, replay, updates, validation)
- State codec and reward model
- Highway environment, persistence and training loops
"""
