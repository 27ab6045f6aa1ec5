"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the lending pool.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Pool accounting and asset conservation
2. atomicity.py - Failed operations change nothing
3. temporal.py - Clock sampling and event ordering

These tests use hypothesis for property-based testing over random
operation sequences.
"""
