"""
Core layer of the tunnel forwarder.

Contains the capability contracts, domain values and the error hierarchy.
Nothing in this package performs I/O.
"""
