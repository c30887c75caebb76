"""Shared fixtures for BDD feature tests.

Scenarios use the root ``tests/conftest.py`` fixtures and the doubles in
``tests.fakes``; nothing feature-specific is needed yet.
"""
