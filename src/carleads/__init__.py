"""CarLeads: buyer lead scoring and dealer routing for a car marketplace."""

__version__ = "0.1.0"
