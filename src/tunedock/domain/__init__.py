"""Domain layer: provider contract, DTOs and exceptions."""
