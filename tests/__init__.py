"""
Test suite for semantic-agents.

Demonstrates testing patterns for Pydantic-based architectures:
- Domain logic tests against in-process capability fakes
- Immutability verification
- Business rule enforcement
- Integration tests for critical paths (real Qdrant / Ollama)
"""
