"""Domain services for recurrence evaluation and generation."""
