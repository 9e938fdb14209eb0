"""Pure domain logic: clock, identifiers, costing, pricing and DTOs."""
