"""External integrations for the CarLeads routing service."""

from .messaging import MessagingGateway, get_gateway

__all__ = ["MessagingGateway", "get_gateway"]
