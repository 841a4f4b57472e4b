"""Closed enumerations persisted as PostgreSQL enum types."""

import enum


class Permission(str, enum.Enum):
    """Capability tags granted to roles."""

    USERS_VIEW = "USERS_VIEW"
    USERS_CREATE = "USERS_CREATE"
    USERS_UPDATE = "USERS_UPDATE"
    USERS_DELETE = "USERS_DELETE"
    INVENTORY_VIEW = "INVENTORY_VIEW"
    INVENTORY_CREATE = "INVENTORY_CREATE"
    INVENTORY_UPDATE = "INVENTORY_UPDATE"
    INVENTORY_DELETE = "INVENTORY_DELETE"
    INVENTORY_ADJUST_STOCK = "INVENTORY_ADJUST_STOCK"
    ORDERS_VIEW = "ORDERS_VIEW"
    ORDERS_CREATE = "ORDERS_CREATE"
    ORDERS_UPDATE = "ORDERS_UPDATE"
    ORDERS_DELETE = "ORDERS_DELETE"
    LOCATIONS_MANAGE = "LOCATIONS_MANAGE"
    SUPPLIERS_MANAGE = "SUPPLIERS_MANAGE"
    REPORTS_VIEW = "REPORTS_VIEW"
    AUDIT_VIEW = "AUDIT_VIEW"
    SETTINGS_MANAGE = "SETTINGS_MANAGE"


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    STOCK_ADJUSTMENT = "STOCK_ADJUSTMENT"
    ORDER_STATUS_CHANGE = "ORDER_STATUS_CHANGE"
