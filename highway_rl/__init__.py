"""Configuration, monitoring, persistence and training loop for highway driving agents."""
