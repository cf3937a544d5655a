"""
API Health Check - Multi-attempt HTTP(S) endpoint probing with webhook alerts.
"""

__version__ = "0.1.0"
