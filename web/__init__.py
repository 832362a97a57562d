"""web/ -- Server-rendered HTML routes and templates."""
