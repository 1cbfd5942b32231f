"""
PyArranger - multi-track arrangement and non-destructive editing engine.
"""
__version__ = "0.1.0"
