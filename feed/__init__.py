"""Feed interaction core: loading, optimistic likes, live reloads, composing.

Nothing here knows about SQLAlchemy or Telegram. The store passed in must
provide fetch_posts, fetch_liked_post_ids, insert_like, delete_like,
profile_exists, insert_post, insert_comment, fetch_comments and
subscribe(table, callback); the storage bucket must provide upload,
get_public_url and remove. Failures of either are BackendError.
"""
