from flask import Flask, g, jsonify, request

from examples.kms_demo.app_config import load_config
from kms_jwt import KMSJWT, KMSJWTError, RemoteSigner


def create_app(client: RemoteSigner | None = None) -> Flask:
    """
    Create a Flask app that mints and checks tokens signed in Cloud KMS.

    Args:
        client: Remote signer to use instead of the default Cloud KMS client.

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    kms_jwt = KMSJWT(app, client=client)

    @app.post("/api/token")
    def issue_token():
        """Mint a token for the subject in the JSON body."""
        body = request.get_json(silent=True) or {}
        sub = body.get("sub")
        if not isinstance(sub, str) or not sub:
            return jsonify({"status": "error", "message": "sub is required"}), 400
        return jsonify({"token": kms_jwt.sign({"sub": sub})}), 201

    @app.get("/api/me")
    @kms_jwt.require()
    def me():
        return jsonify({"status": "success", "sub": g.jwt["sub"], "authenticated": True}), 200

    @app.errorhandler(401)
    def unauthorized(error):
        return jsonify(
            {
                "status": "denied",
                "message": "Access Denied - Please login first",
                "authenticated": False,
            }
        ), 401

    @app.errorhandler(KMSJWTError)
    def kms_error(error: KMSJWTError):
        """Failures while minting, outside of require()."""
        return jsonify({"status": "error", "message": error.description}), error.error_code

    @app.errorhandler(503)
    def unavailable(error):
        return jsonify(
            {
                "status": "error",
                "message": "Key service unavailable. Please try again later.",
            }
        ), 503

    return app
