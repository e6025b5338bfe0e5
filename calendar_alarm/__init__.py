"""Calendar alarm - rings before the first calendar event of each day"""

__version__ = "0.1.0"
