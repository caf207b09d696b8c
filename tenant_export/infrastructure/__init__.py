"""
Infrastructure layer for the tenant export service.

Contains the data-access collaborators and the storage adapters the export
domain writes through.
"""
