"""
qixclient - session-layer client for the Qlik engine JSON-RPC protocol.
"""

__version__ = "0.1.0"
__logo__ = "📊"
