"""
Pydantic schemas for inputs, directory records and responses.
"""
