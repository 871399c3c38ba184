"""
YCSB benchmark driver for the key-value client.

This package launches one YCSB basic-mode generator per client, feeds the
translated operations to the clients synchronously, and merges the per-client
latency and throughput statistics for the load and run phases.
"""

from .main import main

__all__ = ["main"]
