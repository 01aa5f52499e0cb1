"""
Test suite for loadcheck.

This package contains:
- unit/: pure logic (registers, stage plans, state machine, analysis)
- integration/: scenarios against a live stub target
- e2e/: full Locust runs in library mode against the stub target
"""
