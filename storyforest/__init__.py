"""StoryForest: per-child book libraries and wishlists."""
