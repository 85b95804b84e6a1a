"""
Core infrastructure modules for errors, local storage, the proof registry and utilities.
"""

from .errors import *
