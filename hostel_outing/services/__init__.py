"""
Service layer of the hostel outing engine.
"""
