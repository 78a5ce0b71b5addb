"""
Printing Domain

Sequential printing through external programs:
- job.py - Print job and its completion future
- strategies.py - External print mechanisms and their registry
- chain.py - Ordered fallback over strategies per document kind
- print_queue.py - Single-worker FIFO with cooldown between jobs
"""

__all__ = ["chain", "job", "print_queue", "strategies"]
