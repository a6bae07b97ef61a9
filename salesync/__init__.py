"""
salesync - SharePoint sales report sync and barcode scan capture.
"""

__version__ = '1.0.0'
