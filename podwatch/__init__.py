"""podwatch: turn Kubernetes pod watch events into container targets."""

__version__ = "0.1.0"
