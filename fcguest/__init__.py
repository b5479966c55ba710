"""Guest-side helpers for microVM container runtimes: identifiers, config, drives, cleanup and events."""

__version__ = "0.1.0"
__all__ = ["ids", "config", "drives", "cleanup", "eventbridge"]