# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   auth_service     : sign-up, sign-in, token refresh, logout
#   session_service  : persisted refresh tokens, capped per user
#   user_service     : accounts, credentials, profiles
#   role_service     : roles, permission sets, role assignment
#   post_service     : CRUD + pagination + cache for Post
#   taxonomy_service : categories and tags
#   resource_service : media links attached to a post
#   comment_service  : append-only comments on a post
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.  Failures are raised as ``blog_panel.exceptions``
# errors and rendered by the global handlers.
