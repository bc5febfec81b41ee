"""OmniGo marketplace payments backend."""
