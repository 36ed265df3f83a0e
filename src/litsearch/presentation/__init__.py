"""Presentation Layer - command line interface."""
