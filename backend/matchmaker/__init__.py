"""Play-style matching engine with presence-aware ranking."""
