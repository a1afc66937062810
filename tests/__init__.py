"""
Test suite for the Expense Assistant.

Demonstrates testing patterns for Pydantic-based architectures:
- Domain logic tests (lifecycle rules, not validation tests)
- Scripted model doubles instead of network calls
- Business rule enforcement across the tool boundary
- Integration tests for the HTTP surface
"""
