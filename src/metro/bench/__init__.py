"""Benchmarking subsystem for metro.

Runs a project's benchmark command across one or more git revisions,
extracts ``ns/iter`` timings from its output, persists them, and
aggregates and plots the recorded history.
"""
