"""Reservation lifecycle: status derivation and the reservation flow."""
