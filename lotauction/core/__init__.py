"""Core auction logic, collaborators, configuration and storage."""
