"""
Catalog package: books, categories, age ranges, authors and series.

Books live in the repository store; ``store.py`` adds the sample
dataset and the search flow that tops up local results from Google
Books (``google_books_service.py``).
"""

from .router import router as catalog_router  # noqa: F401
