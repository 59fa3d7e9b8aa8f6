"""
Business logic services for the Tag Taxonomy API.
Services handle core operations separate from API endpoints.

Modules are imported directly (e.g. ``from app.services.tag_service import
TagService``); the cache layer imports ``app.services.metrics``, so this
package must stay free of eager imports.
"""
