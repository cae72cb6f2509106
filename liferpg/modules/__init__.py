"""Domain services: stats, the XP ledger and XP awards."""
