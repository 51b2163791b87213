"""
Test Suite

Unit tests for the Vyper clients.

Structure:
- tests/unit/: Tests for individual components (config, schemas, REST client, WebSocket client)

Uses pytest with pytest-asyncio for testing async functionality.
No test touches the network: HTTP sessions and WebSocket connections are mocked.
"""
