"""
Test suite for influxdb-schema-updater.

This package contains tests for all influxschema components:
- Unit tests for parsing, diffing, planning and execution
- Reconciliation runs against an in-memory InfluxDB
- CLI tests through the click test runner
"""
