"""
Blueprint registration for the study coach API.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.core import bp as core_bp
    from blueprints.chat import bp as chat_bp
    from blueprints.schedule import bp as schedule_bp
    from blueprints.parent import bp as parent_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(chat_bp)
    app.register_blueprint(schedule_bp)
    app.register_blueprint(parent_bp)
