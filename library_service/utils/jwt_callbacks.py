from flask import jsonify

from library_service.repositories.user_repo import UserRepo


def register_jwt_callbacks(jwt):
    @jwt.user_identity_loader
    def _identity(user):
        # tokens are minted with the user row or its id
        return str(getattr(user, "id", user))

    @jwt.user_lookup_loader
    def _lookup(_jwt_header, jwt_data):
        try:
            user = UserRepo.get_by_id(int(jwt_data["sub"]))
        except (KeyError, TypeError, ValueError):
            return None
        if not user or not user.is_active:
            return None
        return user

    @jwt.user_lookup_error_loader
    def _lookup_error(_jwt_header, _jwt_data):
        return jsonify({"error": "Invalid or inactive user"}), 401

    @jwt.unauthorized_loader
    def _missing(reason):
        return jsonify({"error": "Access token required"}), 401

    @jwt.invalid_token_loader
    def _invalid(reason):
        return jsonify({"error": "Invalid token"}), 401

    @jwt.expired_token_loader
    def _expired(_jwt_header, _jwt_data):
        return jsonify({"error": "Token expired"}), 401
