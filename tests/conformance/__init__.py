"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the DSC engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. test_solvency.py - Every indebted account stays at or above the minimum
2. test_atomicity.py - All-or-nothing operation semantics
3. test_reentrancy.py - No entry point runs while another is in progress
4. test_non_negativity.py - Positions never go below zero

These tests use hypothesis for property-based testing.
"""
