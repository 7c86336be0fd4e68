"""Last-digit analysis: window, patterns, predictions, match tracking, scanning."""
