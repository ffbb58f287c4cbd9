"""
PRICEPULSE - CLI Package
"""
