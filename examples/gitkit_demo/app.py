"""
Gitkit sign-in demo - Flask application

Serves a profile endpoint protected by the widget's ``gtoken`` cookie and the
out-of-band endpoint the widget posts password-reset / email-change requests
to. Configuration comes from ``GITKIT_*`` environment variables (or a .env
file), see ``GitkitConfig.from_env``.
"""

import logging

from flask import Flask, g, jsonify

from identitytoolkit import GitkitAuth, GitkitClient, GitkitConfig

logger = logging.getLogger(__name__)


def send_oob_email(email: str, link: str) -> None:
    """Stand-in for the application's mailer."""
    logger.info("Would email %s: %s", email, link)


def create_app(client: GitkitClient | None = None) -> Flask:
    """
    Create and configure the Flask application with Gitkit integration.

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)
    gitkit = GitkitAuth()
    gitkit.init_app(app, client=client or GitkitClient(GitkitConfig.from_env()))

    @app.get("/")
    def home():
        """Show who is signed in, if anyone."""
        user = gitkit.current_user()
        if user is None:
            return jsonify({"signed_in": False})
        return jsonify({"signed_in": True, "email": user.email})

    @app.get("/profile")
    @gitkit.require()
    def profile():
        """Profile of the signed-in user."""
        user = g.gitkit_user
        return jsonify(
            {
                "user_id": user.user_id,
                "email": user.email,
                "email_verified": user.email_verified,
                "provider_id": user.provider_id,
            }
        )

    @app.post("/oob")
    def oob():
        """Out-of-band endpoint the widget posts to."""
        result, response = gitkit.oob_response()
        if result.success:
            recipient = result.new_email or result.email
            send_oob_email(recipient, result.oob_link)
        return response

    @app.errorhandler(401)
    def unauthorized(error):
        """Handle unauthorized access errors."""
        return jsonify(
            {
                "status": "denied",
                "message": error.description,
                "authenticated": False,
            }
        ), 401

    return app
