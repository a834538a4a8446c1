"""
Test suite for stream scoring
"""
