"""Library Book Service: deduplicated astrology and numerology books with cached narratives."""
