"""Infrastructure layer — filesystem access, HTTP providers, and Jinja templates."""
