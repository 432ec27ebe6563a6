"""DevEvent: event listings and bookings."""

__version__ = "1.0.0"
