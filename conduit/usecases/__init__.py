# Use cases package.
#
# Each module composes the repositories in ``conduit.services`` with the
# ``AuthToken`` capability and the password service to implement one
# group of API operations:
#
#   users     - register, login, current user, profile update
#   profiles  - fetch profile, follow, unfollow
#   articles  - list, feed, fetch, create, update, delete, favorite, tags
#   comments  - list, add, delete
#
# Authorization decisions live here and nowhere else.  Every function
# takes its collaborators as parameters (an AsyncSession, an AuthToken,
# the raw Authorization header) so tests can swap any of them.
