"""Operator and developer command line scripts."""
