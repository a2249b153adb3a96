from .client import LNDRestClient, LNDTransportError

__all__ = ['LNDRestClient', 'LNDTransportError']
