"""FinQuest progression and reward engine."""

__version__ = "0.1.0"
