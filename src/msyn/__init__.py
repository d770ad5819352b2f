"""msyn - multi-framework asset synchronization"""

__version__ = "0.3.0"
