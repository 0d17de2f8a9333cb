"""
Catalog package: external book search for StoryForest.

Parents find books through Google Books and Open Library, either by
free-text search or by the ISBN read from a barcode scanner. Results
are returned as ``BookSearchResult`` objects that can be posted as-is
to a child's library or wishlist, where they are deduplicated by Open
Library id, Google Books id or ISBN. The routes live in
``catalog.router`` and are mounted by ``storyforest.main``.
"""
