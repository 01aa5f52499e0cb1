"""
Integration test package for loadcheck.

Scenarios, the target client and the run hooks exercised against a live
Flask stub target.  Tests demonstrate:
- Fault injection (failures, latency, corrupted data, unhealthy target)
- Metric assertions after real HTTP round trips
- Setup failures surfacing as exit code 2
"""
