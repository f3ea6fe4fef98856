"""Integration tests: real subprocesses, git and the on-disk result store."""
