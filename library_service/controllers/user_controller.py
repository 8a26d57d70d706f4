from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from library_service.services.user_service import UserService
from library_service.utils import policy
from library_service.utils.decorators import current_principal, permission_required
from library_service.utils.pagination import page_args

user_bp = Blueprint("users", __name__)


@user_bp.get("")
@permission_required(policy.USER_LIST)
def list_users():
    page, limit = page_args(request.args)
    users, pagination = UserService.list_users(current_principal(), request.args, page, limit)
    return jsonify({"users": users, "pagination": pagination})


@user_bp.get("/<int:user_id>")
@jwt_required()
def get_user(user_id: int):
    return jsonify(UserService.get_user_details(current_principal(), user_id))


@user_bp.put("/<int:user_id>")
@jwt_required()
def update_user(user_id: int):
    data = request.get_json(silent=True) or {}
    user = UserService.update_profile(current_principal(), user_id, data)
    return jsonify(user.to_dict())


@user_bp.put("/<int:user_id>/password")
@jwt_required()
def change_password(user_id: int):
    data = request.get_json(silent=True) or {}
    UserService.change_password(current_principal(), user_id, data)
    return jsonify({"message": "Password updated successfully"})


@user_bp.put("/<int:user_id>/status")
@permission_required(policy.USER_SET_STATUS)
def set_status(user_id: int):
    data = request.get_json(silent=True) or {}
    user = UserService.set_status(current_principal(), user_id, data)
    return jsonify(user.to_dict())


@user_bp.delete("/<int:user_id>")
@permission_required(policy.USER_DELETE)
def delete_user(user_id: int):
    UserService.delete_user(current_principal(), user_id)
    return jsonify({"message": "User deleted successfully"})
