"""kqlsh tests.

Test organization:
- unit/: Fast unit tests, every external system replaced by fakes
- fixtures/: In-memory fakes shared by the tests

Run tests with pytest:
    pytest tests/unit/ -v
"""
