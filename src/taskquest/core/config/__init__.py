"""
Configuration layer.

- ``Config`` (``config.py``): static process settings from the environment
  (.env aware).
- ``ConfigManager`` (``manager.py``): game balance from YAML defaults plus
  database overrides.

Only ``Config`` is re-exported here. ``manager`` depends on logging and the
database models, which themselves read ``Config``; import it directly:

    from taskquest.core.config.manager import ConfigManager
"""

from taskquest.core.config.config import Config, Environment

__all__ = ["Config", "Environment"]
