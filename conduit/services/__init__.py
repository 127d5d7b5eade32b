# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# database access for a single domain aggregate:
#
#   user_service      - user directory (users + credentials) and follows
#   article_service   - filtered queries, slug-keyed CRUD, favorites, tags
#   comment_service   - comments scoped to an article
#   password_service  - Argon2 hashing on a dedicated worker pool
#
# All repository functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.
