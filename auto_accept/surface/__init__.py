"""Controller that runs against one chat surface (one CDP page target)."""
