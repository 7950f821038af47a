"""
Test Suite

Structure:
- tests/unit/: Component tests with mocked upstream responses (no network)

Uses pytest with pytest-asyncio for testing async functionality.
"""
