"""Tests for the form builder.

Being a package lets test modules share ``tests.builders``.
"""
