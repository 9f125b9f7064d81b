"""
Slot reservation service for hospital appointment booking.

Holds a doctor's slot exclusively while a patient completes checkout, releases
it on expiry or cancellation and confirms it into a booking exactly once.
"""

__version__ = "0.1.0"
