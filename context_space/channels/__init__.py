"""
Normalizing adapters for the inbound channels (web, whatsapp, x, email, phone).
"""

from .adapters import ADAPTERS, InboundMessage, NormalizingAdapter, get_adapter

__all__ = ["ADAPTERS", "InboundMessage", "NormalizingAdapter", "get_adapter"]
