"""Business logic for bank linking and transaction sync."""
