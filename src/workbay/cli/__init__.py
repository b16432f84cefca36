"""
Workbay command-line interface.
"""
