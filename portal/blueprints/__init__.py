"""
Academic Term Portal
Blueprint registry.
"""

from portal.blueprints.grade_release_bp import grade_release_bp
from portal.blueprints.health_bp import health_bp
from portal.blueprints.scheduler_bp import scheduler_bp
from portal.blueprints.window_bp import window_bp

ALL_BLUEPRINTS = (window_bp, grade_release_bp, scheduler_bp, health_bp)
