"""Remittance domain: enums, entities, value objects, events and rules."""
