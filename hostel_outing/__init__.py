"""
Hostel outing authorization engine.

Turns a student's request to leave the hostel premises into a verified,
time-boxed gate pass: intake validation, parent OTP verification, the
warden/principal approval workflow, gate-pass visit tracking and the
auto-expiry reaper.
"""

__version__ = "1.0.0"
