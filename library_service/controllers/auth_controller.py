from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user

from library_service.services.auth_service import AuthService

auth_bp = Blueprint("auth", __name__)


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    user, token = AuthService.register(data)
    return jsonify({"message": "Registration successful", "user": user.to_dict(), "token": token}), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    user, token = AuthService.login(data)
    return jsonify({"message": "Login successful", "user": user.to_dict(), "token": token})


@auth_bp.get("/me")
@jwt_required()
def me():
    return jsonify({"user": current_user.to_dict()})
