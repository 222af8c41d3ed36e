"""Terminal interaction: confirmation prompts and the progress line."""
