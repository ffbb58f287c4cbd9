"""
PRICEPULSE - API Package
"""
