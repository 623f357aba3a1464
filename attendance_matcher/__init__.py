"""
Attendance Matcher - Face Recognition Attendance Service

Matches captured face embeddings against enrolled identities stored in a
hosted backend and records at most one attendance entry per person per day.
"""

__version__ = "1.0.0"
__author__ = "Attendance Matcher Team"
