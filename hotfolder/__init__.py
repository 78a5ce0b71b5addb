"""
Hotfolder

Watches a folder for new files, records their content in the log, prints
them through a sequential print queue and moves them to an archive folder.
"""

__version__ = "1.0.0"
