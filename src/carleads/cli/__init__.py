"""Command-line interface for the CarLeads routing service."""
