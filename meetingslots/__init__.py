"""
meetingslots - availability and booking engine for meeting scheduling.
"""

__version__ = "0.3.0"
