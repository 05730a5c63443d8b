"""Services used by the branchlore manager, CLI and HTTP API."""
