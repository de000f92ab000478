"""Infrastructure adapters: Postgres, Redis, auth, scheduling and change feeds."""
