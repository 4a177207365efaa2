# =======================================================================================
# campus_access/__init__.py - Package Initialization
# =======================================================================================
"""
Campus Facility Access & Equipment Custody

Turns RFID taps at facility readers into entry/exit sessions and runs the
sports-room equipment desk (issue, partial return, return) on top of the
same student identity records.
"""

__version__ = "1.0.0"
__author__ = "Campus Access Team"
