"""
Core infrastructure layer for TaskQuest.

Subpackages
-----------
- config:   Config (environment) and ConfigManager (YAML + database overrides)
- database: async SQLAlchemy engine lifecycle and declarative base
- event:    in-process EventBus with priority tiers
- logging:  queue-backed structured logging and LogContext
- services: ServiceContainer wiring stores and services together

Import from the subpackages directly; this package re-exports nothing so
that domain modules can depend on ``core.exceptions`` without pulling in the
service container.
"""
