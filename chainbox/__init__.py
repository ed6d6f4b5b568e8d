"""
Chainbox - Disposable local blockchain nodes for test runs.
"""

__version__ = "0.1.0"
