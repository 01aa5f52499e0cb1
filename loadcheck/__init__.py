"""
loadcheck: load-test orchestration and analysis on top of Locust.

Drives a target HTTP service through staged concurrency (smoke, load,
stress, spike and soak profiles), records custom metrics from scripted
scenarios, and turns the run into a verdict with diagnosis and
recommendations.

Submodules are imported explicitly; this package module stays free of
imports so that Locust's gevent patching can run before ``requests`` is
loaded.
"""

__version__ = "1.0.0"
