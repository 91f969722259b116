"""httpx clients for the signing service and the tax authority."""

from src.infrastructure.clients.signing import HttpSigner
from src.infrastructure.clients.transmission import HttpTransmitter

__all__ = ["HttpSigner", "HttpTransmitter"]
