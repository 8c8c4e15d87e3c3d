"""Command line entry points for watchsync."""
