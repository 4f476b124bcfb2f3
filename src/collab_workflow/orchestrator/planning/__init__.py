"""Task planning: task documents -> dependency-ordered execution batches."""
