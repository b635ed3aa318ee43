"""
TaskQuest Test Suite
====================

Test Organization
-----------------
- tests/unit/          : Domain models, formulas, event bus and services
                         over a temporary SQLite file
- tests/unit/domain/   : Pure value-object tests (no database)
- tests/integration/   : HTTP/WebSocket surface, restart persistence and
                         DatabaseService against a real SQLite file

Testing Philosophy
------------------
- Real stores and a real database file instead of repository mocks
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""
