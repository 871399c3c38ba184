"""
Load-testing harness for the key-value store.

The harness drives YCSB in "basic" mode, translates its operation log into
calls against key-value client processes, and reports per-phase throughput and
per-operation latency across many concurrent clients.
"""

__version__ = "0.1.0"
