"""SquadRelay plugins."""
