"""Domain layer — frontmatter codec, template model, and default generators.

This layer depends only on the standard library.
It must never import from services, infrastructure, commands, or config.
"""
