from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Request

from core.app import ServiceCenterApp
from core.errors import NotLoggedInError, PermissionDeniedError
from database.models import SessionUser, UserRole

ELEVATED_ROLES = (UserRole.ADMIN, UserRole.CONTROLLER, UserRole.COORDINATOR)


def get_service_center(request: Request) -> ServiceCenterApp:
    return request.app.state.service_center


def current_user(service_center: ServiceCenterApp = Depends(get_service_center)) -> SessionUser:
    user = service_center.store.user
    if user is None:
        raise NotLoggedInError()
    return user


def require_roles(*roles: UserRole) -> Callable[..., SessionUser]:
    def dependency(user: SessionUser = Depends(current_user)) -> SessionUser:
        if user.role not in roles:
            raise PermissionDeniedError()
        return user

    return dependency


def staff_only() -> Callable[..., SessionUser]:
    return require_roles(*ELEVATED_ROLES)


def admin_only() -> Callable[..., SessionUser]:
    return require_roles(UserRole.ADMIN)


def technician_only() -> Callable[..., SessionUser]:
    return require_roles(UserRole.TECHNICIAN)
