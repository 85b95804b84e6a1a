"""
Fingerprinting services: text extraction, embeddings, vector hashing and similarity matching.
"""
