"""
Test suite for the OwnDc realtime server.

This package contains tests organized by type:
- Unit tests for individual components
- Integration tests against a real SQLite store
- Shared fixtures and test doubles in conftest
"""
