"""
CAPM Studio
An interactive workspace that turns assistant replies into a SAP CAPM project
tree, with a simulated terminal and error-resolution loop.
"""

__version__ = "1.0.0"
