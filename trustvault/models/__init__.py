"""
Pydantic models for fingerprints, stored records and API responses.
"""
