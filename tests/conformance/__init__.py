"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the lending engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. invariants.py - Global state invariants after any operation sequence
2. atomicity.py - All-or-nothing operation semantics
3. conservation.py - Asset conservation across custody and borrowers
4. determinism.py - Reproducible behavior
5. temporal.py - Block-height ordering and due heights

These tests use hypothesis for property-based testing.
"""
