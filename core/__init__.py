"""
Core Package

Contains the transport-agnostic pieces shared by both Vyper clients:
- config: Settings loaded from environment / .env
- logging: Logger setup and helpers
- errors: REST and WebSocket error taxonomy
- schemas: Pydantic models for API payloads and feed control messages
"""
