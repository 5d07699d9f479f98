"""Domain packages for matching, presence, manual status and result ranking."""
