"""
Academic Term Portal
Service layer: workflow graph, status resolution, window validation,
bulk sequencing, grade release gating and background scheduling.

Services own business rules and commits; blueprints only parse input and
render responses.
"""
