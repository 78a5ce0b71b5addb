"""
Intake Domain

Turns file arrivals in the watch folder into actions:
- classifier.py - Content classification and bounded content reading
- archive.py - Collision-safe relocation to the archive folder
- supervisor.py - Watch subscription, de-duplication and pipeline sequencing
"""

__all__ = ["archive", "classifier", "supervisor"]
