"""
End-to-end test package for loadcheck.

Full profile runs through Locust library mode against the stub target,
from stage shape to written reports.
"""
