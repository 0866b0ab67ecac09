"""Library Book Cache: deduplicated geometry with versioned, cached narratives.

Import from the submodules directly (``services.library.service`` and so on).
"""
