"""
Marketplace Tag Taxonomy API

A RESTful service for managing the tag taxonomy of a multi-tenant
marketplace: platform and tenant tag catalogs, hierarchy editing,
platform-to-tenant inheritance, entity tagging and bulk operations.
"""

__version__ = "1.0.0"
