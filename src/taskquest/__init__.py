"""TaskQuest: a cooperative chore game backend."""

__version__ = "1.0.0"
