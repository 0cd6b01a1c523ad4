"""StockBuddy backend: profile media lifecycle service."""
