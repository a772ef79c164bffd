"""Flask presenter for the symbol search engine."""
