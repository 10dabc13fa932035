"""Request classification and routing-decision cache."""
