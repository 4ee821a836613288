"""Prize drawings for fundraising donation ledgers."""
