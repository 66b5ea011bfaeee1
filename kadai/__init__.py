"""
kadai: discover and run project scripts, with plugin-sourced actions.
"""

__version__ = "0.4.0"
