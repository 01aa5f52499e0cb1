"""
Unit test package for loadcheck.

Pure-logic tests with no network access: metric registers, stage plans,
the spike state machine, thresholds, the analysis engine and profile
loading.  Time-dependent code runs on a manual clock.
"""
