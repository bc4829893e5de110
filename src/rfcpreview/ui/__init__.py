"""Qt widgets for the live preview window."""
