"""
Storefront Delivery Backend

Pincode serviceability, freight estimates and transit times for the
storefront checkout, backed by the Delhivery partner APIs.
"""
__version__ = "1.0.0"
